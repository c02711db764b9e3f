"""Tests for pick_default."""
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from diligencestate import Record, pick_default


@dataclass
class Item:
    id: str
    created_at: Optional[datetime] = None


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_empty_list_returns_none():
    assert pick_default([]) is None


def test_single_item_returned_as_is():
    only = Item('x')
    assert pick_default([only]) is only


def test_earliest_created_wins():
    items = [Item('b', utc(2024, 3, 1)), Item('a', utc(2024, 1, 1)), Item('c', utc(2024, 2, 1))]
    assert pick_default(items).id == 'a'


def test_id_breaks_ties_between_unstamped_items():
    items = [Item('zeta'), Item('alpha'), Item('mid')]
    assert pick_default(items).id == 'alpha'


def test_id_breaks_ties_between_equal_timestamps():
    stamp = utc(2024, 1, 1)
    assert pick_default([Item('b', stamp), Item('a', stamp)]).id == 'a'


def test_unstamped_items_come_after_stamped_ones():
    """Children [c2 (no createdAt), c1 (2024-01-01)] default to c1."""
    items = [Item('c2'), Item('c1', utc(2024, 1, 1))]
    assert pick_default(items).id == 'c1'


def test_naive_timestamps_are_treated_as_utc():
    naive = Item('naive', datetime(2024, 1, 1, 10, 0))
    aware = Item('aware', utc(2024, 1, 1, 9, 0))
    assert pick_default([naive, aware]).id == 'aware'


def test_result_does_not_depend_on_input_order():
    items = [Item('c2'), Item('c1', utc(2024, 1, 1)), Item('c0'), Item('c3', utc(2023, 12, 31))]
    picks = {pick_default(list(order)).id for order in itertools.permutations(items)}
    assert picks == {'c3'}


def test_works_on_parsed_children(record):
    assert pick_default(record.children).id == 'c1'
    assert pick_default(record.find_child('c1').grandchildren).id == 'g1-prod'


def test_picks_from_payload_with_z_suffix():
    parsed = Record.from_dict({
        'id': 'R',
        'children': [
            {'id': 'late', 'createdAt': '2024-06-01T12:00:00Z'},
            {'id': 'early', 'createdAt': '2024-06-01T11:59:59Z'},
        ],
    })
    assert pick_default(parsed.children).id == 'early'
