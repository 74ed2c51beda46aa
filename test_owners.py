"""
Tests for owner inference strategies and the batch backfill.
"""

import os
import random
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.dirname(__file__))

from models import TripRecord, UNKNOWN_OWNER
from owners import (
    OwnerHints, backfill_owners, clean_owner_prefix, majority_owners, owner_from_initials,
    owner_from_listing_diff, owner_from_make_keyword, owner_from_possessive, resolve_owner_name,
)


def _trip(row, vehicle, owner=UNKNOWN_OWNER):
    return TripRecord(
        row_number=row,
        trip_start=datetime(2025, 1, row),
        trip_end=datetime(2025, 1, row + 1),
        vehicle_name=vehicle,
        gross_cents=10000,
        owner_name=owner,
    )


class TestCleanOwnerPrefix:

    @pytest.mark.parametrize('raw,expected', [
        ("Alice Smith's ", 'Alice Smith'),
        ('Dev Patel - ', 'Dev Patel'),
        ('Bob Jones’s ', 'Bob Jones'),
        ('Carla D. ', 'Carla D.'),
        (' | ', None),
        ('', None),
        (None, None),
    ])
    def test_prefixes(self, raw, expected):
        assert clean_owner_prefix(raw) == expected


class TestStrategies:

    def test_explicit_owner_column_wins(self):
        hints = OwnerHints(owner='Zed Owner', vehicle='Toyota Sienna 2024',
                           listing="Alice Smith's Toyota Sienna 2024")
        assert resolve_owner_name(hints) == 'Zed Owner'

    def test_first_and_last_name_columns(self):
        hints = OwnerHints(first_name='Ada', last_name='Lovelace', vehicle='Toyota Sienna 2024')
        assert resolve_owner_name(hints) == 'Ada Lovelace'

    def test_first_name_alone_is_not_enough(self):
        hints = OwnerHints(first_name='Ada', vehicle='Toyota Sienna 2024')
        assert resolve_owner_name(hints) == UNKNOWN_OWNER

    def test_listing_diff_substring(self):
        hints = OwnerHints(vehicle='Toyota Sienna 2024', listing="Alice Smith's Toyota Sienna 2024")
        assert owner_from_listing_diff(hints) == 'Alice Smith'

    def test_listing_diff_fuzzy_tokens(self):
        hints = OwnerHints(vehicle='Mercedes-Benz GLB-Class 2021',
                           listing="Bob Jones's Mercedes-Benz GLB Class 2021")
        assert owner_from_listing_diff(hints) == 'Bob Jones'

    def test_listing_diff_same_text(self):
        hints = OwnerHints(vehicle='Honda Odyssey 2023', listing='Honda Odyssey 2023')
        assert owner_from_listing_diff(hints) is None

    def test_possessive(self):
        assert owner_from_possessive(OwnerHints(listing="Maria's Jeep Wrangler")) == 'Maria'
        assert owner_from_possessive(OwnerHints(listing='Jeep Wrangler')) is None

    def test_initials(self):
        assert owner_from_initials(OwnerHints(listing='Carla D. Tesla Model 3')) == 'Carla D.'
        assert owner_from_initials(OwnerHints(listing='Mary Ann L. Porsche 911')) == 'Mary Ann L.'
        assert owner_from_initials(OwnerHints(listing='Tesla Model 3')) is None

    def test_make_keyword(self):
        hints = OwnerHints(listing='Sam Rivera Toyota Camry 2020')
        assert owner_from_make_keyword(hints) == 'Sam Rivera'
        assert owner_from_make_keyword(OwnerHints(listing='Toyota Camry 2020')) is None

    def test_make_keyword_custom_list(self):
        hints = OwnerHints(listing='Sam Rivera Zoomster 9')
        assert owner_from_make_keyword(hints) is None
        assert owner_from_make_keyword(hints, makes=['Zoomster']) == 'Sam Rivera'

    def test_no_hints(self):
        assert resolve_owner_name(OwnerHints()) == UNKNOWN_OWNER


class TestBackfill:

    def test_unknown_rows_take_vehicle_majority(self):
        records = [
            _trip(1, 'Toyota Sienna 2024', 'Alice Smith'),
            _trip(2, 'Toyota Sienna 2024', 'Alice Smith'),
            _trip(3, 'Toyota Sienna 2024', 'Bob Jones'),
            _trip(4, 'Toyota Sienna 2024'),
        ]
        out, issues = backfill_owners(records)
        assert out[3].owner_name == 'Alice Smith'
        # known owners are never rewritten
        assert out[2].owner_name == 'Bob Jones'
        assert issues == []

    def test_unresolvable_rows_warn_once_each(self):
        records = [_trip(1, 'Honda Odyssey 2023'), _trip(2, 'Honda Odyssey 2023')]
        out, issues = backfill_owners(records)
        assert [r.owner_name for r in out] == [UNKNOWN_OWNER, UNKNOWN_OWNER]
        assert [i.message for i in issues] == [
            'Row 1: could not infer owner for vehicle "Honda Odyssey 2023".',
            'Row 2: could not infer owner for vehicle "Honda Odyssey 2023".',
        ]
        assert all(i.severity == 'warning' and i.check == 'unknown_owner' for i in issues)

    def test_tie_breaks_alphabetically(self):
        records = [
            _trip(1, 'Tesla Model 3 2023', 'Zoe'),
            _trip(2, 'Tesla Model 3 2023', 'Adam'),
        ]
        assert majority_owners(records) == {'Tesla Model 3 2023': 'Adam'}

    def test_result_independent_of_row_order(self):
        records = [
            _trip(1, 'Tesla Model 3 2023', 'Zoe'),
            _trip(2, 'Tesla Model 3 2023', 'Adam'),
            _trip(3, 'Tesla Model 3 2023'),
            _trip(4, 'Jeep Wrangler 2022', 'Dev Patel'),
            _trip(5, 'Jeep Wrangler 2022'),
            _trip(6, 'Honda Odyssey 2023'),
        ]
        expected, _ = backfill_owners(records)
        expected_by_row = {r.row_number: r.owner_name for r in expected}

        rng = random.Random(7)
        for _ in range(5):
            shuffled = records[:]
            rng.shuffle(shuffled)
            out, _ = backfill_owners(shuffled)
            assert {r.row_number: r.owner_name for r in out} == expected_by_row
