"""
Trip Export Header Mapper
Resolves the header row of a marketplace trip-earnings export to canonical
trip fields and to the allocation line-item columns present in the file.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from models import MissingColumnsError

# Canonical schema fields
CANONICAL_FIELDS = [
    'trip_start', 'trip_end', 'gross_revenue', 'net_earnings', 'addons_revenue',
    'vehicle_name', 'vehicle_listing', 'owner_name', 'owner_first_name',
    'owner_last_name', 'guest_name', 'reservation_id', 'status', 'is_cancelled',
]

REQUIRED_FIELDS = ['trip_start', 'trip_end', 'gross_revenue']

# Human-readable labels used in the missing-column error, in reporting order.
REQUIRED_FIELD_LABELS = {
    'trip_start': 'Trip start date',
    'trip_end': 'Trip end date',
    'gross_revenue': 'Gross revenue',
}

# Each key is a canonical field; the list holds normalized header names
# (lowercase, alphanumerics only), checked in order; first match wins.
HEADER_ALIASES = {
    'trip_start': ['tripstart', 'startdate', 'pickupdate', 'tripstartdate', 'reservationstart'],
    'trip_end': ['tripend', 'enddate', 'dropoffdate', 'tripenddate', 'reservationend'],
    'gross_revenue': ['tripprice', 'grossrevenue', 'triptotal', 'revenue', 'gross'],
    'net_earnings': ['totalearnings', 'netearnings', 'hostearnings', 'netpayout', 'earnings'],
    'addons_revenue': ['addonrevenue', 'extras', 'additionalincome', 'addons'],
    'vehicle_name': ['vehiclename', 'vehicle', 'car', 'carname'],
    'vehicle_listing': ['listingtitle', 'listingname', 'listing', 'vehiclelisting', 'vehicletitle'],
    'owner_name': ['ownername', 'owner', 'vehicleowner', 'hostname'],
    'owner_first_name': ['ownerfirstname', 'hostfirstname', 'firstname'],
    'owner_last_name': ['ownerlastname', 'hostlastname', 'lastname'],
    'guest_name': ['guest', 'guestname', 'renter', 'rentername', 'primarydriver'],
    'reservation_id': ['reservationid', 'tripid', 'bookingid', 'reservation'],
    'status': ['tripstatus', 'status', 'reservationstatus'],
    'is_cancelled': ['cancelled', 'iscancelled', 'canceled', 'iscanceled'],
}

_NON_ALNUM = re.compile(r'[^a-z0-9]')


@dataclass
class ColumnMap:
    """Source header bound to each canonical field (None when absent)."""
    trip_start: str
    trip_end: str
    gross_revenue: str
    net_earnings: Optional[str] = None
    addons_revenue: Optional[str] = None
    vehicle_name: Optional[str] = None
    vehicle_listing: Optional[str] = None
    owner_name: Optional[str] = None
    owner_first_name: Optional[str] = None
    owner_last_name: Optional[str] = None
    guest_name: Optional[str] = None
    reservation_id: Optional[str] = None
    status: Optional[str] = None
    is_cancelled: Optional[str] = None
    line_item_columns: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out = {f: getattr(self, f) for f in CANONICAL_FIELDS}
        out['line_item_columns'] = dict(self.line_item_columns)
        return out


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def normalize_header(header: str) -> str:
    """Lowercase and drop everything that is not a-z or 0-9."""
    return _NON_ALNUM.sub('', str(header).lower())


def find_column(headers: Iterable[str], aliases: List[str]) -> Optional[str]:
    """Return the original header matching the first alias, or None."""
    normalized: Dict[str, str] = {}
    for h in headers:
        # Keep the first header when two normalize to the same key
        normalized.setdefault(normalize_header(h), h)
    for alias in aliases:
        found = normalized.get(alias)
        if found:
            return found
    return None


def build_line_item_columns(headers: List[str], line_items: Iterable[str]) -> Dict[str, str]:
    """Map every allocation line item that has a matching header."""
    columns = {}
    for item in line_items:
        found = find_column(headers, [normalize_header(item)])
        if found:
            columns[item] = found
    return columns


def build_column_map(headers: List[str], line_items: Iterable[str] = ()) -> ColumnMap:
    """Resolve a header row to a ColumnMap.

    Raises MissingColumnsError naming every required field that could not
    be resolved. All other fields are optional.
    """
    resolved = {f: find_column(headers, HEADER_ALIASES[f]) for f in CANONICAL_FIELDS}

    missing = [REQUIRED_FIELD_LABELS[f] for f in REQUIRED_FIELDS if not resolved[f]]
    if missing:
        raise MissingColumnsError(missing)

    return ColumnMap(
        line_item_columns=build_line_item_columns(headers, line_items),
        **resolved,
    )
