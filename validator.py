"""
Row Validation Engine
Turns one raw CSV row into a TripRecord, or rejects it with a row-scoped
error. Rejections never abort the batch; they are collected as issues.
"""

from itertools import count
from typing import Iterable, List, Mapping, Optional, Tuple

from allocation import AllocationPolicy, DEFAULT_POLICY, compute_split_shares_cents
from models import RowError, TripRecord, UNKNOWN_GUEST, ValidationIssue
from owners import OwnerHints, resolve_owner_name
from parsers import clean_text, parse_cancelled, parse_date, parse_money_cents

# Header row is row 1, so the first data row is row 2.
FIRST_DATA_ROW = 2


def _cell(raw: Mapping, column):
    if not column:
        return None
    return raw.get(column)


def _owner_hints(raw: Mapping, column_map) -> OwnerHints:
    return OwnerHints(
        owner=clean_text(_cell(raw, column_map.owner_name)),
        first_name=clean_text(_cell(raw, column_map.owner_first_name)),
        last_name=clean_text(_cell(raw, column_map.owner_last_name)),
        vehicle=clean_text(_cell(raw, column_map.vehicle_name)),
        listing=clean_text(_cell(raw, column_map.vehicle_listing)),
    )


# ---------------------------------------------------------------------------
# Single row
# ---------------------------------------------------------------------------

def parse_row(raw: Mapping, row_number: int, column_map,
              policy: AllocationPolicy = DEFAULT_POLICY) -> TripRecord:
    """Build a TripRecord from one raw row.

    Raises RowError for an unparseable trip start/end date, an unparseable
    gross revenue, or a missing vehicle name (clean name, then listing).
    """
    start = parse_date(raw.get(column_map.trip_start))
    if start is None:
        raise RowError(row_number, 'invalid trip start date.', check='invalid_date')

    end = parse_date(raw.get(column_map.trip_end))
    if end is None:
        raise RowError(row_number, 'invalid trip end date.', check='invalid_date')

    gross = parse_money_cents(raw.get(column_map.gross_revenue))
    if gross is None:
        raise RowError(row_number, 'invalid gross revenue.', check='invalid_revenue')

    hints = _owner_hints(raw, column_map)
    vehicle = hints.vehicle or hints.listing
    if not vehicle:
        raise RowError(row_number, 'missing vehicle name.', check='missing_vehicle')

    lr_cents, owner_cents = compute_split_shares_cents(raw, column_map.line_item_columns, policy)

    net = parse_money_cents(_cell(raw, column_map.net_earnings)) if column_map.net_earnings else None
    addons = parse_money_cents(_cell(raw, column_map.addons_revenue)) if column_map.addons_revenue else None

    return TripRecord(
        row_number=row_number,
        trip_start=start,
        trip_end=end,
        vehicle_name=vehicle,
        gross_cents=gross,
        lr_cents=lr_cents,
        owner_cents=owner_cents,
        net_cents=net,
        addons_cents=addons,
        owner_name=resolve_owner_name(hints),
        guest_name=clean_text(_cell(raw, column_map.guest_name)) or UNKNOWN_GUEST,
        is_cancelled=parse_cancelled(
            _cell(raw, column_map.is_cancelled),
            _cell(raw, column_map.status),
            has_flag_column=bool(column_map.is_cancelled),
        ),
        status=clean_text(_cell(raw, column_map.status)),
        reservation_id=clean_text(_cell(raw, column_map.reservation_id)),
    )


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

def validate_rows(rows: Iterable[Mapping], column_map,
                  policy: AllocationPolicy = DEFAULT_POLICY,
                  row_numbers: Optional[Iterable[int]] = None) -> Tuple[List[TripRecord], List[ValidationIssue]]:
    """Parse every row, keeping the good ones and one issue per rejected row.

    row_numbers gives each row's source position; by default rows are
    numbered consecutively from FIRST_DATA_ROW.
    """
    numbers = count(FIRST_DATA_ROW) if row_numbers is None else row_numbers
    records = []
    issues = []
    for row_number, raw in zip(numbers, rows):
        row_number = int(row_number)
        try:
            records.append(parse_row(raw, row_number, column_map, policy))
        except RowError as e:
            issues.append(ValidationIssue(
                check=e.check,
                severity='error',
                message=str(e),
                row_number=row_number,
            ))
    return records, issues


def sort_issues(issues: Iterable[ValidationIssue]) -> List[ValidationIssue]:
    """Order issues by source row; stable for issues on the same row."""
    return sorted(issues, key=lambda i: i.row_number)
