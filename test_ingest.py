"""
Tests for the ingestion pipeline:
  - parse_trip_csv() on the fixture export
  - file-level failures (missing columns, empty input, no valid rows)
  - row rejections and warning order
  - the command line entry point
"""

import json
import os
import re
import sys

import pytest

sys.path.insert(0, os.path.dirname(__file__))

import metrics
from allocation import AllocationPolicy
from ingest import decode_bytes, main, parse_trip_csv, read_trip_file
from models import CsvParseError, MissingColumnsError, NoValidRowsError

FIXTURE = os.path.join(os.path.dirname(__file__), 'fixtures', 'trip_earnings_fixture.csv')

HEADER = 'Trip start,Trip end,Vehicle name,Trip price,Total earnings\n'


@pytest.fixture(scope='module')
def fixture_result():
    return read_trip_file(FIXTURE)


def _by_row(result):
    return {r.row_number: r for r in result.records}


# ---------------------------------------------------------------------------
# Fixture export
# ---------------------------------------------------------------------------

class TestFixtureExport:

    def test_all_rows_parsed(self, fixture_result):
        assert len(fixture_result.records) == 10
        assert fixture_result.warnings == []

    def test_row_numbers_follow_the_file(self, fixture_result):
        rows = _by_row(fixture_result)
        assert sorted(rows) == list(range(2, 12))
        assert rows[2].reservation_id == 'R1001'
        assert rows[11].reservation_id == 'R1010'

    def test_allocation_of_first_trip(self, fixture_result):
        r = _by_row(fixture_result)[2]
        # Trip price 300 @ 70%, Delivery 20 @ 10%, Cleaning 25 @ 0%
        assert r.lr_cents == 13300
        assert r.owner_cents == 21200
        assert r.total_earnings_cents == 34500
        assert r.gross_cents == 30000

    def test_owner_inference(self, fixture_result):
        rows = _by_row(fixture_result)
        assert rows[2].owner_name == 'Alice Smith'
        assert rows[3].owner_name == 'Carla D.'
        assert rows[4].owner_name == 'Bob Jones'
        # no listing title: filled from the vehicle's other trips
        assert rows[5].owner_name == 'Alice Smith'

    def test_guest_and_status(self, fixture_result):
        r = _by_row(fixture_result)[6]
        assert r.guest_name == 'Hank Moore'
        assert r.status == 'Host cancelled'
        assert r.is_cancelled is True

    def test_reconciles_to_total_earnings(self, fixture_result):
        records = fixture_result.records
        lr = sum(r.lr_cents for r in records)
        owner = sum(r.owner_cents for r in records)
        total = sum(r.total_earnings_cents for r in records)
        assert lr + owner == total
        d = metrics.build_dashboard_data(records)
        assert abs(d['metrics']['reconciliationGap']) < 0.01

    def test_status_filters(self, fixture_result):
        records = fixture_result.records
        completed = [r for r in records if (r.status or '').lower() == 'completed']
        cancelled = [r for r in records if 'cancel' in (r.status or '').lower()]
        assert len(completed) == 8
        assert len(cancelled) == 2
        assert len(metrics.filter_records(records, completed_only=True)) == 8

    def test_to_dict(self, fixture_result):
        d = fixture_result.to_dict()
        assert len(d['records']) == 10
        first = d['records'][0]
        assert first['rowNumber'] == 2
        assert first['lrShare'] == 133.0
        assert first['ownerShare'] == 212.0
        assert first['tripStart'] == '2025-01-03T10:00:00'


# ---------------------------------------------------------------------------
# File-level failures
# ---------------------------------------------------------------------------

class TestFileErrors:

    def test_missing_gross_revenue_column(self):
        text = ('Trip start,Trip end,Vehicle name,Trip status,Total earnings\n'
                '2025-01-01,2025-01-02,Toyota Sienna 2024,Completed,$100.00\n')
        with pytest.raises(MissingColumnsError) as exc:
            parse_trip_csv(text)
        assert 'Gross revenue' in str(exc.value)
        assert exc.value.missing == ['Gross revenue']

    @pytest.mark.parametrize('text', ['', '   \n\n'])
    def test_empty_input(self, text):
        with pytest.raises(CsvParseError, match='empty or missing a header row'):
            parse_trip_csv(text)

    def test_no_valid_rows(self):
        text = HEADER + 'bad,2025-01-02,Toyota Sienna 2024,$100.00,$100.00\n'
        with pytest.raises(NoValidRowsError, match='No valid rows found after parsing.'):
            parse_trip_csv(text)

    def test_header_only(self):
        with pytest.raises(NoValidRowsError):
            parse_trip_csv(HEADER)


# ---------------------------------------------------------------------------
# Row rejections
# ---------------------------------------------------------------------------

class TestRowErrors:

    def test_bad_rows_are_skipped_with_warnings(self):
        text = HEADER + (
            '2025-01-01,2025-01-02,Toyota Sienna 2024,$100.00,$100.00\n'
            'not a date,2025-01-02,Toyota Sienna 2024,$100.00,$100.00\n'
            '2025-01-01,never,Toyota Sienna 2024,$100.00,$100.00\n'
            '2025-01-01,2025-01-02,Toyota Sienna 2024,abc,$100.00\n'
            '2025-01-01,2025-01-02,,$100.00,$100.00\n'
        )
        result = parse_trip_csv(text)
        assert [r.row_number for r in result.records] == [2]
        assert result.warnings == [
            'Row 2: could not infer owner for vehicle "Toyota Sienna 2024".',
            'Row 3: invalid trip start date.',
            'Row 4: invalid trip end date.',
            'Row 5: invalid gross revenue.',
            'Row 6: missing vehicle name.',
        ]
        assert result.error_count == 4

    def test_warnings_ordered_by_row(self):
        """Owner warnings and rejections interleave by row number."""
        text = HEADER + (
            '2025-01-01,2025-01-02,Honda Odyssey 2023,$100.00,$100.00\n'
            'oops,2025-01-02,Honda Odyssey 2023,$100.00,$100.00\n'
            '2025-01-03,2025-01-04,Honda Odyssey 2023,$50.00,$50.00\n'
        )
        result = parse_trip_csv(text)
        assert result.warnings == [
            'Row 2: could not infer owner for vehicle "Honda Odyssey 2023".',
            'Row 3: invalid trip start date.',
            'Row 4: could not infer owner for vehicle "Honda Odyssey 2023".',
        ]
        assert result.warning_count == 2
        assert result.error_count == 1

    def test_listing_used_when_vehicle_name_missing(self):
        text = ('Trip start,Trip end,Listing title,Trip price\n'
                "2025-01-01,2025-01-02,Maria's Jeep Wrangler,$80.00\n")
        r = parse_trip_csv(text).records[0]
        assert r.vehicle_name == "Maria's Jeep Wrangler"
        assert r.owner_name == 'Maria'
        # no Total earnings column: total falls back to gross
        assert r.net_cents is None
        assert r.total_earnings_cents == 8000

    def test_quoted_amounts_with_commas(self):
        text = HEADER + '2025-01-01,2025-01-09,Toyota Sienna 2024,"$1,040.00","$1,040.00"\n'
        r = parse_trip_csv(text).records[0]
        assert r.gross_cents == 104000
        assert r.lr_cents == 31200
        assert r.owner_cents == 72800

    def test_unquoted_comma_amount_rejects_only_that_row(self):
        text = HEADER + (
            '2025-01-01,2025-01-02,Honda Odyssey 2023,$100.00,$100.00\n'
            '2025-01-03,2025-01-09,Honda Odyssey 2023,$1,000.00,$1,000.00\n'
            '2025-01-10,2025-01-11,Honda Odyssey 2023,$50.00,$50.00\n'
        )
        result = parse_trip_csv(text)
        assert [r.row_number for r in result.records] == [2, 4]
        assert [r.gross_cents for r in result.records] == [10000, 5000]
        assert 'Row 3: expected 5 fields but found 7.' in result.warnings
        assert result.error_count == 1

    def test_trailing_comma_on_every_line(self):
        text = ('Trip start,Trip end,Vehicle name,Trip price,Total earnings,\n'
                '2025-01-01,2025-01-02,Toyota Sienna 2024,$100.00,$100.00,\n'
                '2025-01-03,2025-01-04,Toyota Sienna 2024,$40.00,$40.00,\n')
        result = parse_trip_csv(text)
        assert [r.row_number for r in result.records] == [2, 3]
        assert [r.gross_cents for r in result.records] == [10000, 4000]
        assert [r.total_earnings_cents for r in result.records] == [10000, 4000]
        assert result.error_count == 0


class TestOverrides:

    def test_overrides_applied(self):
        text = HEADER + '2025-01-01,2025-01-02,Toyota Sienna 2024,$100.00,$100.00\n'
        r = parse_trip_csv(text, overrides={'Trip price': 75}).records[0]
        assert r.owner_cents == 7500
        assert r.lr_cents == 2500

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            parse_trip_csv(HEADER, overrides={'Trip price': 150})

    def test_overrides_layered_on_policy(self):
        text = ('Trip start,Trip end,Vehicle name,Trip price,Delivery,Total earnings\n'
                '2025-01-01,2025-01-02,Toyota Sienna 2024,$100.00,$20.00,$120.00\n')
        policy = AllocationPolicy.from_overrides({'Delivery': 50})
        r = parse_trip_csv(text, policy=policy, overrides={'Trip price': 75}).records[0]
        # 75% of 100 + 50% of 20
        assert r.owner_cents == 8500
        assert r.lr_cents == 3500
        assert dict(policy.overrides) == {'Delivery': 50}


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------

class TestDecodeBytes:

    def test_bom_stripped(self):
        assert decode_bytes('\ufeffTrip start'.encode('utf-8')) == 'Trip start'

    def test_latin1_fallback(self):
        assert decode_bytes('Jos\xe9'.encode('latin-1')) == 'Jos\xe9'

    def test_bom_header_still_maps(self):
        raw = ('\ufeff' + HEADER + '2025-01-01,2025-01-02,Toyota Sienna 2024,$100.00,$100.00\n').encode('utf-8')
        result = parse_trip_csv(decode_bytes(raw))
        assert len(result.records) == 1


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------

class TestMain:

    def test_summary(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv('FEE_SETTINGS_PATH', str(tmp_path / 'fee_settings.json'))
        assert main([FIXTURE]) == 0
        out = capsys.readouterr().out
        assert 'TRIP EARNINGS SUMMARY' in out
        assert re.search(r'Trips parsed:\s+10\n', out)

    def test_json_completed_only(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv('FEE_SETTINGS_PATH', str(tmp_path / 'fee_settings.json'))
        assert main([FIXTURE, '--json', '--completed-only']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['dashboard']['metrics']['totalTrips'] == 8
        assert data['dashboard']['metrics']['cancelledTrips'] == 0
        assert data['warnings'] == []

    def test_missing_file(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv('FEE_SETTINGS_PATH', str(tmp_path / 'fee_settings.json'))
        assert main([str(tmp_path / 'nope.csv')]) == 1
        assert 'ERROR' in capsys.readouterr().err

    def test_missing_columns(self, capsys, tmp_path, monkeypatch):
        monkeypatch.setenv('FEE_SETTINGS_PATH', str(tmp_path / 'fee_settings.json'))
        path = tmp_path / 'trips.csv'
        path.write_text('Trip start,Vehicle name\n2025-01-01,Toyota\n', encoding='utf-8')
        assert main([str(path)]) == 1
        assert 'Missing required column(s)' in capsys.readouterr().err
