"""
Dashboard metrics for a set of parsed trips.

build_dashboard_data() is a pure function of the record set: sums are taken
over integer-cents columns and converted to currency only when the result
dict is built, so values do not depend on input order.
"""

import calendar
import math
from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from models import TripRecord

# Illustrative labour assumptions for the per-vehicle cost ratios.
LABOR_HOURS_PER_BOOKING = 2.0
LABOR_HOURLY_RATE = 25.0

COMPLETED_STATUS = 'completed'

_SECONDS_PER_DAY = 24 * 60 * 60


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def month_key(dt: datetime) -> str:
    return f'{dt.year:04d}-{dt.month:02d}'


def month_label(key: str, long: bool = False) -> str:
    """'2025-01' -> 'Jan 2025' (or 'January 2025' when long=True)."""
    year, month = (int(p) for p in key.split('-'))
    return date(year, month, 1).strftime('%B %Y' if long else '%b %Y')


def days_in_month(key: str) -> int:
    year, month = (int(p) for p in key.split('-'))
    return calendar.monthrange(year, month)[1]


def day_span(start: datetime, end: datetime) -> int:
    """Whole days booked, rounded up and never below 1."""
    diff = math.ceil((end - start).total_seconds() / _SECONDS_PER_DAY)
    return max(1, diff)


def _money(cents) -> float:
    return round(int(cents) / 100, 2)


def _pct(numerator: float, denominator: float, cap: Optional[float] = None) -> float:
    if denominator <= 0:
        return 0.0
    pct = numerator / denominator * 100
    if cap is not None:
        pct = min(pct, cap)
    return round(pct, 1)


def _records_frame(records: Sequence[TripRecord]) -> pd.DataFrame:
    rows = [{
        'row': r.row_number,
        'vehicle': r.vehicle_name,
        'owner': r.owner_name,
        'trip_end': r.trip_end,
        'month': month_key(r.trip_end),
        'days': day_span(r.trip_start, r.trip_end),
        'gross': r.gross_cents,
        'total': r.total_earnings_cents,
        'net': r.net_cents or 0,
        'has_net': r.net_cents is not None,
        'lr': r.lr_cents,
        'owner_share': r.owner_cents,
        'cancelled': r.is_cancelled,
    } for r in records]
    df = pd.DataFrame(rows)
    for col in ('gross', 'total', 'net', 'lr', 'owner_share', 'days'):
        df[col] = df[col].astype('int64')
    return df


def _empty_dashboard() -> dict:
    return {
        'metrics': {
            'totalTrips': 0,
            'grossRevenue': 0.0,
            'totalEarnings': 0.0,
            'netEarnings': None,
            'lrShare': 0.0,
            'ownerShare': 0.0,
            'reconciliationGap': 0.0,
            'averageTripValue': 0.0,
            'cancelledTrips': 0,
            'cancellationRate': 0.0,
        },
        'monthlyRevenue': [],
        'monthlyUtilization': [],
        'monthlySplit': [],
        'vehicleBreakdown': [],
        'ownerBreakdown': [],
        'vehiclePerformance': [],
        'cancellationBreakdown': [
            {'name': 'Completed', 'value': 0},
            {'name': 'Cancelled', 'value': 0},
        ],
    }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def build_dashboard_data(records: Sequence[TripRecord],
                         labor_hours_per_booking: float = LABOR_HOURS_PER_BOOKING,
                         labor_rate: float = LABOR_HOURLY_RATE) -> dict:
    """Compute dashboard metrics, monthly series and breakdowns.

    Monthly series are keyed by the trip END month. Utilization for a month
    is booked days / (days in month x vehicles active that month), capped at
    100%.
    """
    records = list(records)
    if not records:
        return _empty_dashboard()

    df = _records_frame(records)
    total_trips = len(df)

    gross = int(df['gross'].sum())
    total = int(df['total'].sum())
    lr = int(df['lr'].sum())
    owner = int(df['owner_share'].sum())
    net = int(df['net'].sum()) if df['has_net'].any() else None
    cancelled = int(df['cancelled'].sum())

    metrics = {
        'totalTrips': total_trips,
        'grossRevenue': _money(gross),
        'totalEarnings': _money(total),
        'netEarnings': None if net is None else _money(net),
        'lrShare': _money(lr),
        'ownerShare': _money(owner),
        'reconciliationGap': _money(total - (lr + owner)),
        'averageTripValue': round(gross / total_trips / 100, 2),
        'cancelledTrips': cancelled,
        'cancellationRate': _pct(cancelled, total_trips),
    }

    # --- Monthly series (trip end month) ---
    monthly = (
        df.groupby('month')
        .agg(gross=('gross', 'sum'), lr=('lr', 'sum'), owner_share=('owner_share', 'sum'),
             booked_days=('days', 'sum'), vehicles=('vehicle', 'nunique'))
        .reset_index()
        .sort_values('month')
    )
    monthly_revenue = []
    monthly_utilization = []
    monthly_split = []
    for row in monthly.itertuples(index=False):
        label = month_label(row.month)
        available = days_in_month(row.month) * int(row.vehicles)
        monthly_revenue.append({'monthKey': row.month, 'month': label, 'revenue': _money(row.gross)})
        monthly_utilization.append({
            'monthKey': row.month,
            'month': label,
            'utilizationPct': _pct(int(row.booked_days), available, cap=100.0),
        })
        monthly_split.append({
            'monthKey': row.month,
            'month': label,
            'lrShare': _money(row.lr),
            'ownerShare': _money(row.owner_share),
        })

    return {
        'metrics': metrics,
        'monthlyRevenue': monthly_revenue,
        'monthlyUtilization': monthly_utilization,
        'monthlySplit': monthly_split,
        'vehicleBreakdown': _vehicle_breakdown(df, labor_hours_per_booking, labor_rate),
        'ownerBreakdown': _owner_breakdown(df),
        'vehiclePerformance': _vehicle_performance(df),
        'cancellationBreakdown': [
            {'name': 'Completed', 'value': max(0, total_trips - cancelled)},
            {'name': 'Cancelled', 'value': cancelled},
        ],
    }


def _vehicle_breakdown(df: pd.DataFrame, labor_hours_per_booking: float, labor_rate: float) -> List[dict]:
    # Owner of each vehicle's latest trip; row number and name break ties
    latest_owner = (
        df.sort_values(['trip_end', 'row', 'owner'])
        .groupby('vehicle')['owner']
        .last()
    )
    per_vehicle = (
        df.groupby('vehicle')
        .agg(bookings=('row', 'count'), total=('total', 'sum'), lr=('lr', 'sum'),
             owner_share=('owner_share', 'sum'), months=('month', 'nunique'))
        .reset_index()
    )

    out = []
    for row in per_vehicle.itertuples(index=False):
        bookings = int(row.bookings)
        lr_amount = int(row.lr) / 100
        labor_cost = bookings * labor_hours_per_booking * labor_rate
        out.append({
            'vehicle': row.vehicle,
            'ownerName': latest_owner[row.vehicle],
            'bookings': bookings,
            'totalEarnings': _money(row.total),
            'lrShare': _money(row.lr),
            'ownerShare': _money(row.owner_share),
            'laborCost': round(labor_cost, 2),
            'laborCostToLrShareRatio': round(labor_cost / lr_amount, 2) if lr_amount > 0 else None,
            'lrSharePerBooking': round(lr_amount / bookings, 2),
            'avgMonthlyLrShare': round(lr_amount / int(row.months), 2),
        })
    out.sort(key=lambda v: (-v['totalEarnings'], v['vehicle']))
    return out


def _owner_breakdown(df: pd.DataFrame) -> List[dict]:
    per_owner = (
        df.groupby('owner')
        .agg(vehicles=('vehicle', 'nunique'), bookings=('row', 'count'), total=('total', 'sum'),
             lr=('lr', 'sum'), owner_share=('owner_share', 'sum'))
        .reset_index()
    )
    out = [{
        'ownerName': row.owner,
        'vehicles': int(row.vehicles),
        'bookings': int(row.bookings),
        'totalEarnings': _money(row.total),
        'lrShare': _money(row.lr),
        'ownerShare': _money(row.owner_share),
    } for row in per_owner.itertuples(index=False)]
    out.sort(key=lambda o: (-o['ownerShare'], o['ownerName']))
    return out


def _vehicle_performance(df: pd.DataFrame) -> List[dict]:
    """Gross, trip count and utilization over each vehicle's own active months."""
    active_months = df.groupby('vehicle')['month'].unique()
    per_vehicle = (
        df.groupby('vehicle')
        .agg(gross=('gross', 'sum'), trips=('row', 'count'), booked_days=('days', 'sum'))
        .reset_index()
    )
    out = []
    for row in per_vehicle.itertuples(index=False):
        available = sum(days_in_month(m) for m in active_months[row.vehicle])
        out.append({
            'vehicle': row.vehicle,
            'grossRevenue': _money(row.gross),
            'tripCount': int(row.trips),
            'utilizationPct': _pct(int(row.booked_days), available, cap=100.0),
        })
    out.sort(key=lambda v: (-v['grossRevenue'], v['vehicle']))
    return out


# ---------------------------------------------------------------------------
# Record selection
# ---------------------------------------------------------------------------

def is_completed(record: TripRecord) -> bool:
    return (record.status or '').strip().lower() == COMPLETED_STATUS


def filter_records(records: Iterable[TripRecord], month: Optional[str] = None,
                   owners: Optional[Iterable[str]] = None, vehicles: Optional[Iterable[str]] = None,
                   completed_only: bool = False) -> List[TripRecord]:
    """Select records by trip-end month ('YYYY-MM'), owner, vehicle and status.

    Empty owner/vehicle selections mean "all"; month None or 'all' means all.
    """
    owner_set = set(owners or ())
    vehicle_set = set(vehicles or ())
    out = []
    for r in records:
        if completed_only and not is_completed(r):
            continue
        if month and month != 'all' and month_key(r.trip_end) != month:
            continue
        if owner_set and r.owner_name not in owner_set:
            continue
        if vehicle_set and r.vehicle_name not in vehicle_set:
            continue
        out.append(r)
    return out


def month_options(records: Iterable[TripRecord]) -> List[dict]:
    """Distinct trip-end months, oldest first, for month pickers."""
    keys = sorted({month_key(r.trip_end) for r in records})
    return [{'value': k, 'label': month_label(k, long=True)} for k in keys]
