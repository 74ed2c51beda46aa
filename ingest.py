"""
Trip Earnings Ingestion
Parses a marketplace trip-earnings CSV export into allocated TripRecords and
prints a dashboard summary from the command line.
"""

import argparse
import csv
import io
import json
import logging
import os
import sys
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd
from dotenv import load_dotenv

import metrics
import settings
from allocation import AllocationPolicy, DEFAULT_POLICY
from mapper import build_column_map
from models import CsvParseError, NoValidRowsError, ParseResult, ValidationIssue
from owners import backfill_owners
from validator import FIRST_DATA_ROW, sort_issues, validate_rows

log = logging.getLogger('fleetsplit')


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

EMPTY_CSV_MESSAGE = 'CSV appears empty or missing a header row.'


def _is_blank_record(fields: List[str]) -> bool:
    return not any(str(c).strip() for c in fields)


def _header_names(fields: List[str]) -> List[str]:
    """Trimmed header names; trailing empty cells dropped, duplicates suffixed like pandas."""
    names = [str(c).strip() for c in fields]
    while names and not names[-1]:
        names.pop()
    seen: Dict[str, int] = {}
    out = []
    for i, name in enumerate(names):
        name = name or f'Unnamed: {i}'
        if name in seen:
            seen[name] += 1
            name = f'{name}.{seen[name]}'
        else:
            seen[name] = 0
        out.append(name)
    return out


def _read_rows(csv_text: str) -> Tuple[pd.DataFrame, List[ValidationIssue]]:
    """Split decoded CSV text into a string DataFrame indexed by source row.

    Blank lines are skipped. Empty cells past the last header (a trailing
    comma on every line) are dropped; a row that still has more cells than
    the header is reported as an issue and left out. Short rows are padded.
    """
    if not csv_text or not csv_text.strip():
        raise CsvParseError(EMPTY_CSV_MESSAGE)
    try:
        records = [r for r in csv.reader(io.StringIO(csv_text)) if not _is_blank_record(r)]
    except csv.Error as e:
        raise CsvParseError(f'CSV could not be read: {e}')

    headers = _header_names(records[0]) if records else []
    if not headers:
        raise CsvParseError(EMPTY_CSV_MESSAGE)

    width = len(headers)
    rows = []
    row_numbers = []
    issues = []
    for idx, fields in enumerate(records[1:]):
        row_number = idx + FIRST_DATA_ROW
        if len(fields) > width:
            if not _is_blank_record(fields[width:]):
                issues.append(ValidationIssue(
                    check='malformed_row',
                    severity='error',
                    message=f'Row {row_number}: expected {width} fields but found {len(fields)}.',
                    row_number=row_number,
                ))
                continue
            fields = fields[:width]
        rows.append(fields + [''] * (width - len(fields)))
        row_numbers.append(row_number)

    df = pd.DataFrame(rows, columns=headers, index=row_numbers, dtype=str)
    return df.fillna(''), issues


def parse_trip_csv(csv_text: str, policy: Optional[AllocationPolicy] = None,
                   overrides: Optional[Mapping[str, int]] = None) -> ParseResult:
    """Parse a trip export into validated, allocated, owner-backfilled records.

    policy / overrides: allocation settings. Overrides (line item -> owner %)
    are layered on top of `policy`, or on top of the default table when no
    policy is given.

    Raises MissingColumnsError when a mandatory column is absent and
    NoValidRowsError when every row is rejected. Per-row problems end up in
    ParseResult.warnings, ordered by row number.
    """
    policy = policy or DEFAULT_POLICY
    if overrides:
        merged = dict(policy.overrides)
        merged.update(overrides)
        policy = AllocationPolicy(overrides=merged, defaults=policy.defaults)

    df, read_issues = _read_rows(csv_text)
    column_map = build_column_map(list(df.columns), policy.line_items)

    records, issues = validate_rows(df.to_dict('records'), column_map, policy,
                                    row_numbers=list(df.index))
    if not records:
        raise NoValidRowsError()

    # Full barrier: backfill needs every row of the batch.
    records, owner_issues = backfill_owners(records)

    return ParseResult(
        records=records,
        issues=sort_issues(read_issues + issues + owner_issues),
        column_map=column_map,
    )



def decode_bytes(raw: bytes) -> str:
    """Decode file bytes, trying UTF-8 (with and without BOM) before latin-1."""
    for enc in ('utf-8-sig', 'utf-8'):
        try:
            return raw.decode(enc)
        except (UnicodeDecodeError, UnicodeError):
            continue
    # latin-1 never fails (all bytes 0-255 are valid), so use it as fallback
    return raw.decode('latin-1')


def read_trip_file(filepath: str, policy: Optional[AllocationPolicy] = None) -> ParseResult:
    """Read and parse a trip export from disk."""
    with open(filepath, 'rb') as f:
        text = decode_bytes(f.read())
    result = parse_trip_csv(text, policy=policy)
    log.info("Parsed %s: %d records, %d warnings",
             os.path.basename(filepath), len(result.records), len(result.warnings))
    return result


# ---------------------------------------------------------------------------
# Console summary
# ---------------------------------------------------------------------------

def print_summary(result: ParseResult, dashboard: dict, max_warnings: int = 10):
    """Print a summary to the console."""
    m = dashboard['metrics']

    print("\n" + "=" * 65)
    print("  TRIP EARNINGS SUMMARY")
    print("=" * 65)
    print(f"  Trips parsed:           {m['totalTrips']}")
    print(f"  Gross revenue:          ${m['grossRevenue']:,.2f}")
    print(f"  Total earnings:         ${m['totalEarnings']:,.2f}")
    print(f"  LR share:               ${m['lrShare']:,.2f}")
    print(f"  Owner share:            ${m['ownerShare']:,.2f}")
    print(f"  Reconciliation gap:     ${m['reconciliationGap']:,.2f}")
    print(f"  Average trip value:     ${m['averageTripValue']:,.2f}")
    print(f"  Cancellation rate:      {m['cancellationRate']:.1f}%")

    print("\n  MONTHLY (by trip end):")
    print("  " + "-" * 61)
    util = {u['monthKey']: u['utilizationPct'] for u in dashboard['monthlyUtilization']}
    split = {s['monthKey']: s for s in dashboard['monthlySplit']}
    for mr in dashboard['monthlyRevenue']:
        key = mr['monthKey']
        print(f"    {mr['month']:<10s}  ${mr['revenue']:>12,.2f}  util {util.get(key, 0):>5.1f}%  "
              f"LR ${split[key]['lrShare']:>10,.2f}  Owner ${split[key]['ownerShare']:>10,.2f}")

    print("\n  VEHICLES:")
    print("  " + "-" * 61)
    for vb in dashboard['vehicleBreakdown']:
        print(f"    {vb['vehicle'][:28]:<28s}  {vb['ownerName'][:16]:<16s}  {vb['bookings']:>3} trips  "
              f"LR ${vb['lrShare']:>10,.2f}")

    warnings = result.warnings
    if warnings:
        print(f"\n  WARNINGS ({len(warnings)}):")
        print("  " + "-" * 61)
        for w in warnings[:max_warnings]:
            print(f"    {w}")
        if len(warnings) > max_warnings:
            print(f"    +{len(warnings) - max_warnings} more")
    print("=" * 65)


# ---------------------------------------------------------------------------
# Main CLI
# ---------------------------------------------------------------------------

def main(argv=None):
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    parser = argparse.ArgumentParser(description='Trip earnings LR / Owner revenue split.')
    parser.add_argument('csv_path', help='Path to the trip earnings CSV export')
    parser.add_argument('--fee-settings', default=None,
                        help='Fee settings JSON (defaults to FEE_SETTINGS_PATH or fee_settings.json)')
    parser.add_argument('--completed-only', action='store_true',
                        help='Aggregate only trips whose status is "Completed"')
    parser.add_argument('--json', action='store_true', help='Print the dashboard data as JSON')

    args = parser.parse_args(argv)

    policy = settings.load_fee_settings(args.fee_settings)

    try:
        result = read_trip_file(args.csv_path, policy=policy)
    except (CsvParseError, OSError) as e:
        print(f"  ERROR: {e}", file=sys.stderr)
        return 1

    records = metrics.filter_records(result.records, completed_only=args.completed_only)
    dashboard = metrics.build_dashboard_data(records, **settings.labor_settings())

    if args.json:
        print(json.dumps({'dashboard': dashboard, 'warnings': result.warnings}, indent=2))
    else:
        print_summary(result, dashboard)
    return 0


if __name__ == '__main__':
    sys.exit(main())
