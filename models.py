"""
Data classes and error types shared by the trip ingestion pipeline.
Money is stored as integer cents; decimal amounts are produced only by the
read-side properties and to_dict().
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

UNKNOWN_OWNER = 'Unknown owner'
UNKNOWN_GUEST = 'Unknown guest'


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class CsvParseError(ValueError):
    """The whole file could not be parsed."""


class MissingColumnsError(CsvParseError):
    """One or more of the mandatory columns is absent from the header row."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required column(s): {', '.join(self.missing)}.")


class NoValidRowsError(CsvParseError):
    """Every data row was rejected."""

    def __init__(self, message: str = 'No valid rows found after parsing.'):
        super().__init__(message)


class RowError(ValueError):
    """A single data row was rejected; the batch continues."""

    def __init__(self, row_number: int, reason: str, check: str = 'invalid_row'):
        self.row_number = row_number
        self.reason = reason
        self.check = check
        super().__init__(f'Row {row_number}: {reason}')


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TripRecord:
    """One parsed, allocated booking row."""
    row_number: int             # 1-based source row (header row = 1)
    trip_start: datetime
    trip_end: datetime
    vehicle_name: str
    gross_cents: int
    lr_cents: int = 0
    owner_cents: int = 0
    net_cents: Optional[int] = None
    addons_cents: Optional[int] = None
    owner_name: str = UNKNOWN_OWNER
    guest_name: str = UNKNOWN_GUEST
    is_cancelled: bool = False
    status: Optional[str] = None
    reservation_id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.row_number, bool) or not isinstance(self.row_number, int) or self.row_number < 1:
            raise ValueError(f'row_number must be a positive integer, got {self.row_number!r}')
        if not self.vehicle_name:
            raise ValueError('vehicle_name must not be empty')

    @property
    def total_earnings_cents(self) -> int:
        return self.net_cents if self.net_cents is not None else self.gross_cents

    @property
    def gross_revenue(self) -> float:
        return round(self.gross_cents / 100, 2)

    @property
    def net_earnings(self) -> Optional[float]:
        return None if self.net_cents is None else round(self.net_cents / 100, 2)

    @property
    def addons_revenue(self) -> Optional[float]:
        return None if self.addons_cents is None else round(self.addons_cents / 100, 2)

    @property
    def total_earnings(self) -> float:
        return round(self.total_earnings_cents / 100, 2)

    @property
    def lr_share(self) -> float:
        return round(self.lr_cents / 100, 2)

    @property
    def owner_share(self) -> float:
        return round(self.owner_cents / 100, 2)

    @property
    def has_known_owner(self) -> bool:
        return self.owner_name != UNKNOWN_OWNER

    def to_dict(self) -> dict:
        return {
            'rowNumber': self.row_number,
            'tripStart': self.trip_start.isoformat(),
            'tripEnd': self.trip_end.isoformat(),
            'vehicleName': self.vehicle_name,
            'ownerName': self.owner_name,
            'guestName': self.guest_name,
            'reservationId': self.reservation_id,
            'grossRevenue': self.gross_revenue,
            'netEarnings': self.net_earnings,
            'addonsRevenue': self.addons_revenue,
            'totalEarnings': self.total_earnings,
            'lrShare': self.lr_share,
            'ownerShare': self.owner_share,
            'isCancelled': self.is_cancelled,
            'status': self.status,
        }


@dataclass
class ValidationIssue:
    """A single row-scoped problem found while parsing."""
    check: str              # e.g. 'invalid_date', 'unknown_owner'
    severity: str           # 'error' (row dropped) or 'warning' (row kept)
    message: str            # Human-readable description, prefixed "Row N: "
    row_number: int = 0


@dataclass
class ParseResult:
    """Validated, allocated and backfilled records plus row diagnostics."""
    records: List[TripRecord] = field(default_factory=list)
    issues: List[ValidationIssue] = field(default_factory=list)
    column_map: Optional[object] = None

    @property
    def warnings(self) -> List[str]:
        return [i.message for i in self.issues]

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == 'error')

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == 'warning')

    def to_dict(self) -> dict:
        return {
            'records': [r.to_dict() for r in self.records],
            'warnings': self.warnings,
        }
