"""
Line-item revenue allocation between the fleet manager (LR) and the vehicle owner.

Every monetary line item in a trip row is split by its own ratio, expressed in
basis points. All arithmetic is done on integer cents: the LR part is rounded
once and the owner part is the exact complement, so the two parts always add
back to the original amount.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from parsers import parse_money_cents

BPS_SCALE = 10_000

# Default owner % per line item; LR always receives the complement.
DEFAULT_OWNER_PCT = MappingProxyType({
    'Trip price': 70,
    'Boost price': 70,
    '3-day discount': 70,
    '1-week discount': 70,
    '2-week discount': 70,
    '3-week discount': 70,
    '1-month discount': 70,
    '2-month discount': 70,
    '3-month discount': 70,
    'Non-refundable discount': 70,
    'Early bird discount': 70,
    'Host promotional credit': 70,
    'Cancellation fee': 70,
    'Additional usage': 70,
    'Excess distance': 100,
    'Smoking': 10,
    'Delivery': 10,
    'Extras': 0,
    'Gas reimbursement': 0,
    'Cleaning': 0,
    'Late fee': 0,
    'Improper return fee': 0,
    'Airport operations fee': 0,
    'Airport parking credit': 0,
    'On-trip EV charging': 0,
    'Post-trip EV charging': 0,
    'Tolls & tickets': 0,
    'Fines (paid to host)': 100,
    'Other fees': 0,
    'Gas fee': 0,
    'Sales tax': 0,
})


def _validate_pct(item: str, pct) -> int:
    if isinstance(pct, bool) or not isinstance(pct, int):
        if isinstance(pct, float) and pct.is_integer():
            pct = int(pct)
        else:
            raise ValueError(f"Owner % for '{item}' must be a whole number, got {pct!r}")
    if not 0 <= pct <= 100:
        raise ValueError(f"Owner % for '{item}' must be between 0 and 100, got {pct}")
    return pct


@dataclass(frozen=True)
class AllocationPolicy:
    """Default owner percentages merged with caller overrides.

    Overrides for names outside the default table are treated as extra
    line items. The defaults mapping itself is never modified.
    """
    overrides: Mapping[str, int] = field(default_factory=dict)
    defaults: Mapping[str, int] = field(default_factory=lambda: DEFAULT_OWNER_PCT)

    def __post_init__(self):
        checked = {item: _validate_pct(item, pct) for item, pct in dict(self.overrides).items()}
        object.__setattr__(self, 'overrides', MappingProxyType(checked))

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, int]] = None) -> 'AllocationPolicy':
        return cls(overrides=dict(overrides or {}))

    @property
    def line_items(self) -> Tuple[str, ...]:
        extra = [k for k in self.overrides if k not in self.defaults]
        return tuple(self.defaults) + tuple(extra)

    def owner_pct(self, item: str) -> int:
        """Resolved owner % for a line item: override if present, else default."""
        if item in self.overrides:
            return self.overrides[item]
        return self.defaults[item]

    def ratios(self) -> Dict[str, Tuple[int, int]]:
        """{item: (owner_bps, lr_bps)} with owner_bps + lr_bps == 10000."""
        out = {}
        for item in self.line_items:
            owner_bps = self.owner_pct(item) * 100
            out[item] = (owner_bps, BPS_SCALE - owner_bps)
        return out

    def to_dict(self) -> dict:
        return {
            'overrides': dict(self.overrides),
            'resolved': {item: self.owner_pct(item) for item in self.line_items},
        }


DEFAULT_POLICY = AllocationPolicy()


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------

def _round_div(numerator: int, denominator: int) -> int:
    """Integer division rounded half away from zero."""
    if numerator < 0:
        return -((-numerator * 2 + denominator) // (denominator * 2))
    return (numerator * 2 + denominator) // (denominator * 2)


def split_cents(amount_cents: int, lr_bps: int) -> Tuple[int, int]:
    """Split an amount into (lr_part, owner_part).

    lr_part = round(amount * lr_bps / 10000); owner_part is the remainder.
    """
    lr_part = _round_div(amount_cents * lr_bps, BPS_SCALE)
    return lr_part, amount_cents - lr_part


def compute_split_shares_cents(raw: Mapping, line_item_columns: Mapping[str, str],
                               policy: AllocationPolicy = DEFAULT_POLICY) -> Tuple[int, int]:
    """Sum the LR and owner parts of every mapped line item in one row.

    Missing columns and unparseable cells contribute zero.
    """
    lr_total = 0
    owner_total = 0
    for item, (_owner_bps, lr_bps) in policy.ratios().items():
        column = line_item_columns.get(item)
        if not column:
            continue
        amount = parse_money_cents(raw.get(column))
        if not amount:
            continue
        lr_part, owner_part = split_cents(amount, lr_bps)
        lr_total += lr_part
        owner_total += owner_part
    return lr_total, owner_total
