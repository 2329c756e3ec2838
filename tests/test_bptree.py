"""
MiniIndex B+ Tree Map Tests
===========================
Tests for BPlusTreeMap: insert/search, duplicate rejection, splits,
structural invariants, range queries, and diagnostics.
"""

import logging
import os
import random
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from indexing.bptree import ORDER, BPlusTreeMap
from indexing.errors import DuplicateKeyError, TypeMismatchError
from indexing.types import DataType


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════

@pytest.fixture
def small_tree():
    """Keys 1, 3, 5, 7, 9 with value key * key."""
    t = BPlusTreeMap(int, int)
    for i in range(1, 10, 2):
        t.put(i, i * i)
    return t


@pytest.fixture
def big_tree():
    """500 shuffled even keys 0..998, value = -key."""
    t = BPlusTreeMap(int, int)
    keys = list(range(0, 1000, 2))
    random.Random(42).shuffle(keys)
    for k in keys:
        t.put(k, -k)
    return t


# ═══════════════════════════════════════════════════════════════════
# Search / Insert
# ═══════════════════════════════════════════════════════════════════

class TestSearch:

    def test_small_tree_scenario(self, small_tree):
        assert small_tree.first_key() == 1
        assert small_tree.last_key() == 9
        assert small_tree.sub_map(3, 8) == {3: 9, 5: 25, 7: 49}

    def test_point_lookups(self, small_tree):
        for i in range(10):
            expected = i * i if i % 2 else None
            assert small_tree.get(i) == expected

    def test_lookup_past_bounds(self, small_tree):
        assert small_tree.get(-100) is None
        assert small_tree.get(100) is None

    def test_separator_key_routes_right(self, small_tree):
        # 5 is the root separator after the first split
        assert small_tree.height == 2
        assert small_tree.get(5) == 25

    def test_subscript(self, small_tree):
        assert small_tree[7] == 49
        with pytest.raises(KeyError):
            small_tree[8]
        assert 9 in small_tree
        assert 8 not in small_tree

    def test_empty_tree(self):
        t = BPlusTreeMap(int, int)
        assert t.get(1) is None
        assert t.first_key() is None
        assert t.last_key() is None
        assert t.size() == 0
        assert t.entries() == []
        assert t.head_map(10).size() == 0
        assert t.verify_structure() == []

    def test_round_trip_many(self, big_tree):
        for k in range(0, 1000, 2):
            assert big_tree.get(k) == -k
        for k in range(1, 1000, 2):
            assert big_tree.get(k) is None


class TestDuplicates:

    def test_duplicate_in_leaf_root(self):
        t = BPlusTreeMap(int, str)
        t.put(1, "one")
        with pytest.raises(DuplicateKeyError) as exc:
            t.put(1, "uno")
        assert exc.value.key == 1
        assert t.get(1) == "one"
        assert t.size() == 1

    def test_duplicate_in_full_leaf_does_not_split(self):
        t = BPlusTreeMap(int, int)
        for k in (1, 2, 3, 4):
            t.put(k, k)
        with pytest.raises(DuplicateKeyError):
            t.put(3, 30)
        assert t.height == 1
        assert t.entries() == [(1, 1), (2, 2), (3, 3), (4, 4)]

    def test_duplicate_of_separator_key(self, big_tree):
        size = big_tree.size()
        height = big_tree.height
        for k in range(0, 1000, 2):
            with pytest.raises(DuplicateKeyError):
                big_tree.put(k, 0)
        assert big_tree.size() == size
        assert big_tree.height == height
        assert big_tree.get(500) == -500
        assert big_tree.verify_structure() == []

    def test_duplicate_reported_by_exception_only(self, small_tree, caplog):
        caplog.set_level(logging.DEBUG, logger="indexing.bptree")
        with pytest.raises(DuplicateKeyError):
            small_tree.put(7, 0)
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert any("duplicate" in r.getMessage() for r in caplog.records)

    def test_duplicate_is_a_key_error(self, small_tree):
        with pytest.raises(KeyError):
            small_tree.put(3, 0)

    def test_put_returns_none(self):
        t = BPlusTreeMap(int, int)
        assert t.put(1, 1) is None


# ═══════════════════════════════════════════════════════════════════
# Splits / Structure
# ═══════════════════════════════════════════════════════════════════

class TestStructure:

    def test_leaf_split_layout(self, small_tree):
        lines = small_tree.dump().splitlines()
        assert "[ . 5 . ]" in lines
        assert "\t[ . 1 . 3 . ]" in lines
        assert "\t[ . 5 . 7 . 9 . ]" in lines

    def test_no_split_until_full(self):
        t = BPlusTreeMap(int, int)
        for k in range(ORDER - 1):
            t.put(k, k)
        assert t.height == 1
        t.put(ORDER, ORDER)
        assert t.height == 2

    def test_root_growth(self):
        t = BPlusTreeMap(int, int, order=3)
        heights = []
        for k in range(100):
            t.put(k, k)
            heights.append(t.height)
        # Height never shrinks and only grows one level at a time
        assert heights == sorted(heights)
        assert all(b - a <= 1 for a, b in zip(heights, heights[1:]))
        assert t.height > 3
        assert t.verify_structure() == []

    @pytest.mark.parametrize("order", [3, 4, 5, 8, 33])
    def test_invariants_random_inserts(self, order):
        t = BPlusTreeMap(int, int, order=order)
        keys = random.Random(order).sample(range(-5000, 5000), 1500)
        for k in keys:
            t.put(k, k * 2)

        assert t.verify_structure() == []
        assert list(t) == sorted(keys)
        assert t.size() == 1500
        assert len(t) == 1500
        assert t.first_key() == min(keys)
        assert t.last_key() == max(keys)

    @pytest.mark.parametrize("keys", [range(300), range(300, 0, -1)])
    def test_invariants_monotone_inserts(self, keys):
        t = BPlusTreeMap(int, int)
        for k in keys:
            t.put(k, k)
        assert t.verify_structure() == []
        assert [k for k, _ in t.entries()] == sorted(keys)

    def test_string_keys(self):
        t = BPlusTreeMap(DataType.STRING, DataType.INT)
        words = [f"w{i:04d}" for i in range(200)]
        for i, w in enumerate(reversed(words)):
            t.put(w, i)
        assert list(t) == words
        assert t.first_key() == "w0000"
        assert t.last_key() == "w0199"
        assert t.verify_structure() == []


# ═══════════════════════════════════════════════════════════════════
# Range Queries
# ═══════════════════════════════════════════════════════════════════

class TestRanges:

    def test_head_map(self, small_tree):
        assert small_tree.head_map(5).entries() == [(1, 1), (3, 9)]
        assert small_tree.head_map(1).size() == 0
        assert small_tree.head_map(100).size() == 5

    def test_tail_map(self, small_tree):
        assert small_tree.tail_map(5).entries() == [(5, 25), (7, 49), (9, 81)]
        assert small_tree.tail_map(10).size() == 0
        assert small_tree.tail_map(-10).size() == 5

    def test_sub_map_bounds(self, small_tree):
        assert small_tree.sub_map(3, 3).size() == 0
        assert small_tree.sub_map(4, 6).entries() == [(5, 25)]
        assert small_tree.sub_map(0, 100).size() == 5

    def test_sub_map_reversed_bounds(self, small_tree):
        with pytest.raises(ValueError):
            small_tree.sub_map(8, 3)

    def test_none_bound_is_not_unbounded(self):
        t = BPlusTreeMap()
        for k in (1, 2, 3):
            t.put(k, k)
        with pytest.raises(TypeMismatchError):
            t.tail_map(None)
        with pytest.raises(TypeMismatchError):
            t.sub_map(None, 2)
        assert BPlusTreeMap().tail_map(None).size() == 0

    def test_ranges_match_brute_force(self, big_tree):
        keys = sorted(big_tree)
        rng = random.Random(7)
        for _ in range(100):
            lo, hi = sorted(rng.randint(-50, 1050) for _ in range(2))
            assert list(big_tree.sub_map(lo, hi)) == [k for k in keys if lo <= k < hi]
            assert list(big_tree.head_map(hi)) == [k for k in keys if k < hi]
            assert list(big_tree.tail_map(lo)) == [k for k in keys if k >= lo]

    def test_range_values(self, big_tree):
        view = big_tree.sub_map(100, 120)
        assert view == {k: -k for k in range(100, 120, 2)}

    def test_views_are_snapshots(self, small_tree):
        view = small_tree.tail_map(4)
        small_tree.put(6, 36)
        assert 6 not in view
        view.put(8, 64)
        assert small_tree.get(8) is None

    def test_view_is_a_tree(self, big_tree):
        view = big_tree.sub_map(200, 400)
        assert isinstance(view, BPlusTreeMap)
        assert view.order == big_tree.order
        assert view.first_key() == 200
        assert view.last_key() == 398
        assert view.verify_structure() == []


# ═══════════════════════════════════════════════════════════════════
# Diagnostics / Errors
# ═══════════════════════════════════════════════════════════════════

class TestDiagnostics:

    def test_access_counter_counts_levels(self, big_tree):
        big_tree.reset_access_count()
        big_tree.get(500)
        assert big_tree.access_count == big_tree.height

    def test_access_counter_on_put(self):
        t = BPlusTreeMap(int, int)
        t.put(1, 1)
        assert t.access_count == 1

    def test_dump_header(self, small_tree):
        assert small_tree.dump().startswith("BPlusTreeMap")


class TestErrors:

    def test_key_type_mismatch(self, small_tree):
        with pytest.raises(TypeMismatchError) as exc:
            small_tree.put("x", 1)
        assert exc.value.role == "key"
        assert small_tree.size() == 5

    def test_value_type_mismatch(self, small_tree):
        with pytest.raises(TypeMismatchError):
            small_tree.put(2, 2.5)

    def test_range_bound_type_mismatch(self, small_tree):
        with pytest.raises(TypeMismatchError):
            small_tree.head_map("5")

    @pytest.mark.parametrize("kwargs", [{"order": 2}, {"initial_size": -1}])
    def test_invalid_construction(self, kwargs):
        with pytest.raises(ValueError):
            BPlusTreeMap(int, int, **kwargs)

    def test_untyped_tree_rejects_unorderable_key(self):
        t = BPlusTreeMap()
        for k in range(10):
            t.put(k, k)
        with pytest.raises(TypeMismatchError) as exc:
            t.put("a", 2)
        assert exc.value.role == "key"
        assert exc.value.expected is int
        assert t.size() == 10
        assert list(t) == list(range(10))
        assert t.verify_structure() == []

    def test_untyped_tree_lookups_reject_unorderable_key(self):
        t = BPlusTreeMap()
        t.put(1, 1)
        with pytest.raises(TypeMismatchError):
            t.get("a")
        with pytest.raises(TypeMismatchError):
            t["a"]
        with pytest.raises(TypeMismatchError):
            t.tail_map("a")
        with pytest.raises(TypeMismatchError):
            t.head_map(None)

    def test_untyped_empty_tree_sub_map_unorderable_bounds(self):
        with pytest.raises(TypeMismatchError):
            BPlusTreeMap().sub_map("a", 1)

    def test_untyped_tree_accepts_any_first_key(self):
        t = BPlusTreeMap()
        t.put("a", 1)
        t.put("b", 2)
        assert t.entries() == [("a", 1), ("b", 2)]


class TestMembership:

    def test_wrong_key_type_is_not_contained(self, small_tree):
        assert "3" not in small_tree
        assert "3" not in small_tree.keys()
        assert 3 in small_tree

    def test_unorderable_key_is_not_contained(self):
        t = BPlusTreeMap()
        t.put(1, 1)
        assert "a" not in t
        assert 1 in t
