"""
Owner Identity Resolver
Infers the vehicle owner's display name for each trip row and reconciles
owners across the batch.

Per-row inference is an ordered list of small strategies (OWNER_STRATEGIES);
the first one that returns a name wins. The make keyword list and the
initials pattern are tuned to one marketplace export format and can be
replaced by callers. Rows that fall through every strategy are reported
rather than guessed at.
"""

import re
from collections import Counter, defaultdict
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from models import TripRecord, UNKNOWN_OWNER, ValidationIssue

VEHICLE_MAKES = [
    'Mercedes-Benz', 'Mercedes', 'Land Rover', 'Range Rover', 'Alfa Romeo', 'Aston Martin',
    'Rolls-Royce', 'Toyota', 'Honda', 'Tesla', 'BMW', 'Audi', 'Ford', 'Chevrolet', 'Chevy',
    'Jeep', 'Nissan', 'Hyundai', 'Kia', 'Lexus', 'Subaru', 'Volkswagen', 'VW', 'Mazda',
    'Dodge', 'Ram', 'GMC', 'Cadillac', 'Porsche', 'Volvo', 'Acura', 'Infiniti', 'Chrysler',
    'Buick', 'Lincoln', 'MINI', 'Genesis', 'Jaguar', 'Maserati', 'Fiat', 'Mitsubishi',
    'Polestar', 'Rivian', 'Lucid', 'Bentley', 'Lamborghini', 'Ferrari', 'McLaren',
]

# "Firstname Lastname I." or "Firstname I." at the start of a listing label
OWNER_INITIALS_PATTERN = re.compile(r"^((?:[A-Z][\w'\-]*\s+){1,2}[A-Z]\.)\s+\S")

_POSSESSIVE_SPLIT = re.compile(r"['’]s\s+", re.IGNORECASE)
_POSSESSIVE_TAIL = re.compile(r"['’]s$", re.IGNORECASE)
_SEPARATORS = " \t-–—:|,;/·•"
_TOKEN = re.compile(r'[A-Za-z0-9]+')


@dataclass(frozen=True)
class OwnerHints:
    """Raw cells that can reveal the owner of one row."""
    owner: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    vehicle: Optional[str] = None       # clean vehicle name
    listing: Optional[str] = None       # raw listing title

    @property
    def label(self) -> Optional[str]:
        return self.listing or self.vehicle


def clean_owner_prefix(prefix: Optional[str]) -> Optional[str]:
    """Trim separators and a trailing possessive from an owner prefix."""
    if not prefix:
        return None
    s = prefix.strip().rstrip(_SEPARATORS)
    s = _POSSESSIVE_TAIL.sub('', s)
    s = s.rstrip(_SEPARATORS + "'’").strip()
    return s or None


# ---------------------------------------------------------------------------
# Strategies (OwnerHints -> Optional[str])
# ---------------------------------------------------------------------------

def owner_from_column(hints: OwnerHints) -> Optional[str]:
    return (hints.owner or '').strip() or None


def owner_from_name_parts(hints: OwnerHints) -> Optional[str]:
    first = (hints.first_name or '').strip()
    last = (hints.last_name or '').strip()
    if first and last:
        return f'{first} {last}'
    return None


def _words_match(got: str, want: str) -> bool:
    if got == want:
        return True
    shorter, longer = sorted((got, want), key=len)
    return len(shorter) >= 3 and longer.startswith(shorter)


def _matched_tokens(raw_tokens: Sequence[str], expected: Sequence[str]) -> int:
    """Count expected tokens found in order within raw_tokens."""
    pos = 0
    count = 0
    for want in expected:
        j = pos
        while j < len(raw_tokens) and not _words_match(raw_tokens[j], want):
            j += 1
        if j < len(raw_tokens):
            count += 1
            pos = j + 1
    return count


def _fuzzy_listing_prefix(listing: str, vehicle: str) -> Optional[str]:
    expected = [t.lower() for t in _TOKEN.findall(vehicle)]
    if not expected:
        return None
    required = min(2, len(expected))

    matches = list(_TOKEN.finditer(listing))
    raw_tokens = [m.group(0).lower() for m in matches]
    for start in range(1, len(raw_tokens)):
        if not _words_match(raw_tokens[start], expected[0]):
            continue
        if _matched_tokens(raw_tokens[start:], expected) >= required:
            return clean_owner_prefix(listing[:matches[start].start()])
    return None


def owner_from_listing_diff(hints: OwnerHints) -> Optional[str]:
    """Owner is whatever precedes the clean vehicle name inside the listing title.

    "Alice Smith's Toyota Sienna 2024" vs "Toyota Sienna 2024" -> "Alice Smith".
    Falls back to a token-wise prefix match so that "GLB Class" still lines
    up with "GLB-Class".
    """
    vehicle = (hints.vehicle or '').strip()
    listing = (hints.listing or '').strip()
    if not vehicle or not listing:
        return None

    idx = listing.lower().find(vehicle.lower())
    if idx == 0:
        return None
    if idx > 0:
        return clean_owner_prefix(listing[:idx])
    return _fuzzy_listing_prefix(listing, vehicle)


def owner_from_possessive(hints: OwnerHints) -> Optional[str]:
    label = hints.label
    if not label:
        return None
    parts = _POSSESSIVE_SPLIT.split(label.strip(), maxsplit=1)
    if len(parts) < 2:
        return None
    return clean_owner_prefix(parts[0])


def owner_from_initials(hints: OwnerHints, pattern=None) -> Optional[str]:
    label = hints.label
    if not label:
        return None
    m = (pattern or OWNER_INITIALS_PATTERN).match(label.strip())
    if not m:
        return None
    return m.group(1).strip() or None


def owner_from_make_keyword(hints: OwnerHints, makes: Optional[Iterable[str]] = None) -> Optional[str]:
    """Split the label at the first make keyword that leaves a non-empty prefix."""
    label = (hints.label or '').strip()
    if not label:
        return None
    for make in (VEHICLE_MAKES if makes is None else makes):
        pattern = re.compile(r'(?<![A-Za-z0-9])' + re.escape(make) + r'(?![A-Za-z0-9])', re.IGNORECASE)
        m = pattern.search(label)
        if not m:
            continue
        owner = clean_owner_prefix(label[:m.start()])
        if owner:
            return owner
    return None


OwnerStrategy = Callable[[OwnerHints], Optional[str]]

# Priority order: explicit columns first, then structural diff, then
# single-string heuristics.
OWNER_STRATEGIES: List[OwnerStrategy] = [
    owner_from_column,
    owner_from_name_parts,
    owner_from_listing_diff,
    owner_from_possessive,
    owner_from_initials,
    owner_from_make_keyword,
]


def resolve_owner_name(hints: OwnerHints,
                       strategies: Sequence[OwnerStrategy] = OWNER_STRATEGIES) -> str:
    for strategy in strategies:
        owner = strategy(hints)
        if owner:
            return owner
    return UNKNOWN_OWNER


# ---------------------------------------------------------------------------
# Batch backfill
# ---------------------------------------------------------------------------

def majority_owners(records: Iterable[TripRecord]) -> Dict[str, str]:
    """Most frequent known owner per vehicle; ties go to the alphabetically first."""
    counts: Dict[str, Counter] = defaultdict(Counter)
    for r in records:
        if r.has_known_owner:
            counts[r.vehicle_name][r.owner_name] += 1
    return {
        vehicle: min(c.items(), key=lambda kv: (-kv[1], kv[0]))[0]
        for vehicle, c in counts.items()
    }


def backfill_owners(records: List[TripRecord]) -> Tuple[List[TripRecord], List[ValidationIssue]]:
    """Fill "Unknown owner" rows from other rows of the same vehicle.

    Must run after every row of the batch has been parsed. Returns the new
    record list and one warning per row that is still unknown.
    """
    majority = majority_owners(records)
    out = []
    issues = []
    for r in records:
        if not r.has_known_owner and r.vehicle_name in majority:
            r = replace(r, owner_name=majority[r.vehicle_name])
        out.append(r)
        if not r.has_known_owner:
            issues.append(ValidationIssue(
                check='unknown_owner',
                severity='warning',
                message=f'Row {r.row_number}: could not infer owner for vehicle "{r.vehicle_name}".',
                row_number=r.row_number,
            ))
    return out, issues
