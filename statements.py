"""
Owner Statements
Builds one monthly statement per owner from allocated trips: trip lines with
platform and management deductions, reimbursable expenses, and the balance
due to the owner. Amounts are kept in cents until to_dict().
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from metrics import day_span, month_key, month_label
from models import TripRecord
from parsers import cents_to_amount


@dataclass
class OwnerExpense:
    """A reimbursable expense charged against an owner's statement."""
    id: str
    owner_name: str
    description: str
    date: str               # YYYY-MM-DD
    amount_cents: int

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'description': self.description,
            'date': self.date,
            'amount': cents_to_amount(self.amount_cents),
        }


@dataclass
class StatementTrip:
    trip_id: str
    vehicle: str
    renter: str
    trip_start: str
    trip_end: str
    days: int
    gross_cents: int
    platform_fee_cents: int     # gross - total earnings
    management_fee_cents: int   # LR share
    net_to_owner_cents: int     # owner share

    def to_dict(self) -> dict:
        return {
            'tripId': self.trip_id,
            'vehicle': self.vehicle,
            'renter': self.renter,
            'tripStart': self.trip_start,
            'tripEnd': self.trip_end,
            'days': self.days,
            'grossRevenue': cents_to_amount(self.gross_cents),
            'platformFees': cents_to_amount(self.platform_fee_cents),
            'managementFees': cents_to_amount(self.management_fee_cents),
            'netToOwner': cents_to_amount(self.net_to_owner_cents),
        }


@dataclass
class OwnerStatement:
    owner_name: str
    month_key: str
    statement_date: str
    trips: List[StatementTrip] = field(default_factory=list)
    expenses: List[OwnerExpense] = field(default_factory=list)

    @property
    def month_label(self) -> str:
        return month_label(self.month_key, long=True)

    @property
    def total_gross_cents(self) -> int:
        return sum(t.gross_cents for t in self.trips)

    @property
    def total_platform_fee_cents(self) -> int:
        return sum(t.platform_fee_cents for t in self.trips)

    @property
    def total_management_fee_cents(self) -> int:
        return sum(t.management_fee_cents for t in self.trips)

    @property
    def total_owner_share_cents(self) -> int:
        return sum(t.net_to_owner_cents for t in self.trips)

    @property
    def total_expense_cents(self) -> int:
        return sum(e.amount_cents for e in self.expenses)

    @property
    def balance_due_owner_cents(self) -> int:
        return self.total_owner_share_cents - self.total_expense_cents

    def to_dict(self) -> dict:
        return {
            'ownerName': self.owner_name,
            'month': self.month_key,
            'monthLabel': self.month_label,
            'statementDate': self.statement_date,
            'trips': [t.to_dict() for t in self.trips],
            'expenses': [e.to_dict() for e in self.expenses],
            'totalGrossRevenue': cents_to_amount(self.total_gross_cents),
            'totalPlatformFees': cents_to_amount(self.total_platform_fee_cents),
            'totalManagementFees': cents_to_amount(self.total_management_fee_cents),
            'totalOwnerShare': cents_to_amount(self.total_owner_share_cents),
            'totalExpenses': cents_to_amount(self.total_expense_cents),
            'totalBalanceDueOwner': cents_to_amount(self.balance_due_owner_cents),
        }


def _statement_trip(r: TripRecord) -> StatementTrip:
    return StatementTrip(
        trip_id=r.reservation_id or f'ROW-{r.row_number}',
        vehicle=r.vehicle_name,
        renter=r.guest_name,
        trip_start=r.trip_start.date().isoformat(),
        trip_end=r.trip_end.date().isoformat(),
        days=day_span(r.trip_start, r.trip_end),
        gross_cents=r.gross_cents,
        platform_fee_cents=r.gross_cents - r.total_earnings_cents,
        management_fee_cents=r.lr_cents,
        net_to_owner_cents=r.owner_cents,
    )


def build_owner_statements(records: Iterable[TripRecord], month: str,
                           expenses: Optional[Iterable[OwnerExpense]] = None,
                           statement_date: Optional[date] = None) -> List[OwnerStatement]:
    """One statement per owner with trips ending in `month` ('YYYY-MM').

    Owners that only have expenses that month still get a statement.
    Statements are sorted by owner name, trips by end date then row.
    """
    stamp = (statement_date or date.today()).isoformat()
    by_owner: Dict[str, List[TripRecord]] = {}
    for r in records:
        if month_key(r.trip_end) == month:
            by_owner.setdefault(r.owner_name, []).append(r)

    expenses_by_owner: Dict[str, List[OwnerExpense]] = {}
    for e in expenses or ():
        if e.date[:7] == month:
            expenses_by_owner.setdefault(e.owner_name, []).append(e)

    statements = []
    for owner in sorted(set(by_owner) | set(expenses_by_owner)):
        trips = sorted(by_owner.get(owner, []), key=lambda r: (r.trip_end, r.row_number))
        statements.append(OwnerStatement(
            owner_name=owner,
            month_key=month,
            statement_date=stamp,
            trips=[_statement_trip(r) for r in trips],
            expenses=sorted(expenses_by_owner.get(owner, []), key=lambda e: (e.date, e.id)),
        ))
    return statements
