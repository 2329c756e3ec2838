"""
MiniIndex B+ Tree Map
=====================
In-memory B+ Tree ordered map supporting insert, point lookup and
range queries (head / tail / sub maps).

Node types:
  - LEAF: sorted keys with parallel values. Linked via next_leaf
    (left to right, ascending) for range scans.
  - INTERNAL: sorted separator keys with child nodes.
    Invariant: left subtree < K, right subtree >= K.

Fanout:
  - A node holds at most ORDER - 1 keys (ORDER children).
  - Leaf split: first ORDER // 2 pairs stay, the rest move right,
    the right node's first key is COPIED UP.
  - Internal split: first ORDER // 2 keys stay, the next key is
    PUSHED UP, the rest move right.

Duplicates: rejected with DuplicateKeyError, tree unchanged.
Range results: snapshots (new BPlusTreeMap), not live views.
Concurrency: single-writer, no locking. A split mutates the leaf,
possibly several ancestors and the root, so concurrent use needs
whole-tree locking or latch coupling layered on top.
Delete: not supported.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterator, List, Optional, Tuple

from indexing.errors import DuplicateKeyError, TypeMismatchError
from indexing.types import TypeSpec, check, resolve_type

logger = logging.getLogger(__name__)

# ─── Constants ──────────────────────────────────────────────────────────────

ORDER = 5
MIN_ORDER = 3

# Missing range bound; None can be a key in an untyped tree
_UNBOUNDED = object()


# ─── Node ───────────────────────────────────────────────────────────────────

class BPlusNode:
    """
    Leaf or internal node.
    Leaves use `values` and `next_leaf`; internal nodes use `children`
    (always len(keys) + 1 of them).
    """
    __slots__ = ('is_leaf', 'keys', 'values', 'children', 'next_leaf')

    def __init__(self, is_leaf: bool):
        self.is_leaf = is_leaf
        self.keys: List[Any] = []
        self.values: List[Any] = []
        self.children: List['BPlusNode'] = []
        self.next_leaf: Optional['BPlusNode'] = None

    @property
    def key_count(self) -> int:
        return len(self.keys)

    def child_index(self, key: Any) -> int:
        """Index of the child to descend into: first separator > key."""
        for i, k in enumerate(self.keys):
            if key < k:
                return i
        return len(self.keys)

    def find_key_pos(self, key: Any) -> int:
        """Position of the first key >= key."""
        for i, k in enumerate(self.keys):
            if k >= key:
                return i
        return len(self.keys)

    def wedge(self, pos: int, key: Any, ref: Any) -> None:
        """
        Insert key at pos, shifting later entries right.
        For a leaf, ref is the value stored beside the key; for an internal
        node it is the child holding keys >= key, placed at pos + 1.
        """
        self.keys.insert(pos, key)
        if self.is_leaf:
            self.values.insert(pos, ref)
        else:
            self.children.insert(pos + 1, ref)


# ─── B+ Tree Map ───────────────────────────────────────────────────────────

class BPlusTreeMap(Mapping):
    """
    Ordered key -> value map over a B+ Tree.

    Usage:
        t = BPlusTreeMap(int, int)
        for k in (1, 3, 5, 7, 9):
            t.put(k, k * k)
        t.first_key()            # 1
        t.sub_map(3, 8).entries()  # [(3, 9), (5, 25), (7, 49)]
    """

    def __init__(self, key_type: TypeSpec = None, value_type: TypeSpec = None,
                 initial_size: int = 0, order: int = ORDER):
        # initial_size is accepted for constructor parity with LinearHashMap;
        # a B+ Tree starts as a single empty leaf regardless.
        if order < MIN_ORDER:
            raise ValueError(f"order must be >= {MIN_ORDER}, got {order}")
        if initial_size < 0:
            raise ValueError(f"initial_size must be >= 0, got {initial_size}")
        self._key_type = resolve_type(key_type)
        self._value_type = resolve_type(value_type)
        self._order = order
        self._root = BPlusNode(is_leaf=True)
        self._height = 1
        self._access_count = 0

    # ─── Properties ─────────────────────────────────────────────────

    @property
    def order(self) -> int:
        return self._order

    @property
    def max_keys(self) -> int:
        return self._order - 1

    @property
    def height(self) -> int:
        """Number of levels; 1 while the root is a leaf."""
        return self._height

    @property
    def access_count(self) -> int:
        """Nodes visited by get/put since creation or last reset."""
        return self._access_count

    def reset_access_count(self) -> None:
        self._access_count = 0

    # ─── Search ─────────────────────────────────────────────────────

    def get(self, key: Any, default: Any = None) -> Any:
        """Point lookup by root-to-leaf descent. Returns default if absent."""
        self._check_key(key)
        leaf = self._find_leaf(key, count=True)
        pos = leaf.find_key_pos(key)
        if pos < leaf.key_count and leaf.keys[pos] == key:
            return leaf.values[pos]
        return default

    def __getitem__(self, key: Any) -> Any:
        self._check_key(key)
        leaf = self._find_leaf(key, count=True)
        pos = leaf.find_key_pos(key)
        if pos < leaf.key_count and leaf.keys[pos] == key:
            return leaf.values[pos]
        raise KeyError(key)

    def __contains__(self, key: Any) -> bool:
        try:
            self[key]
        except (KeyError, TypeMismatchError):
            return False
        return True

    def _check_key(self, key: Any) -> None:
        """
        Validate key against the declared type, and against the stored
        keys' type when none is declared (keys must be mutually ordered).
        """
        check(key, self._key_type, "key")
        if self._key_type is not None:
            return
        leaf = self._leftmost_leaf()
        if not leaf.keys:
            return
        first = leaf.keys[0]
        try:
            key < first
            first < key
        except TypeError:
            raise TypeMismatchError(key, type(first), "key") from None

    def first_key(self) -> Any:
        """Smallest key, or None when empty."""
        leaf = self._leftmost_leaf()
        return leaf.keys[0] if leaf.keys else None

    def last_key(self) -> Any:
        """Largest key, or None when empty."""
        node = self._root
        while not node.is_leaf:
            node = node.children[-1]
        return node.keys[-1] if node.keys else None

    # ─── Insert ─────────────────────────────────────────────────────

    def put(self, key: Any, value: Any) -> None:
        """
        Insert a new key/value pair. Always returns None on success.
        Raises DuplicateKeyError (tree unchanged) if the key exists.
        Handles node splits and root splits automatically.
        """
        self._check_key(key)
        check(value, self._value_type, "value")

        result = self._insert_recursive(self._root, key, value)
        if result is not None:
            # Root was split: create new root
            split_key, sibling = result
            new_root = BPlusNode(is_leaf=False)
            new_root.keys.append(split_key)
            new_root.children.append(self._root)
            new_root.children.append(sibling)
            self._root = new_root
            self._height += 1
            logger.debug("root split on %r, height now %d", split_key, self._height)
        return None

    def _insert_recursive(self, node: BPlusNode, key: Any,
                          value: Any) -> Optional[Tuple[Any, BPlusNode]]:
        """
        Returns None if no split, or (separator_key, new_sibling)
        if this node split and the caller must absorb the sibling.
        """
        self._access_count += 1

        if node.is_leaf:
            pos = node.find_key_pos(key)
            if pos < node.key_count and node.keys[pos] == key:
                logger.debug("rejected duplicate key %r", key)
                raise DuplicateKeyError(key)
            if node.key_count < self.max_keys:
                node.wedge(pos, key, value)
                return None
            return self._split_leaf(node, pos, key, value)

        child_idx = node.child_index(key)
        result = self._insert_recursive(node.children[child_idx], key, value)
        if result is None:
            return None

        split_key, sibling = result
        if node.key_count < self.max_keys:
            node.wedge(child_idx, split_key, sibling)
            return None
        return self._split_internal(node, child_idx, split_key, sibling)

    # ─── Split ──────────────────────────────────────────────────────

    def _split_leaf(self, node: BPlusNode, pos: int, key: Any,
                    value: Any) -> Tuple[Any, BPlusNode]:
        """
        Split a full leaf around the incoming pair.
        Separator is COPIED UP (sibling retains it).
        """
        keys = node.keys[:pos] + [key] + node.keys[pos:]
        values = node.values[:pos] + [value] + node.values[pos:]
        mid = self._order // 2

        sibling = BPlusNode(is_leaf=True)
        sibling.keys = keys[mid:]
        sibling.values = values[mid:]
        # Maintain leaf chain: new.next = old.next; old.next = new
        sibling.next_leaf = node.next_leaf

        node.keys = keys[:mid]
        node.values = values[:mid]
        node.next_leaf = sibling

        logger.debug("leaf split: %r | %r", node.keys, sibling.keys)
        return sibling.keys[0], sibling

    def _split_internal(self, node: BPlusNode, child_idx: int, split_key: Any,
                        new_child: BPlusNode) -> Tuple[Any, BPlusNode]:
        """
        Split a full internal node after absorbing (split_key, new_child).
        Middle key is PUSHED UP (removed from both halves).

        With ORDER=5, after absorbing: keys=[k0..k4], children=[c0..c5]
        Mid=2: promoted=k2
        Left:  keys=[k0,k1], children=[c0,c1,c2]
        Right: keys=[k3,k4], children=[c3,c4,c5]
        """
        keys = node.keys[:child_idx] + [split_key] + node.keys[child_idx:]
        children = (node.children[:child_idx + 1] + [new_child]
                    + node.children[child_idx + 1:])
        mid = self._order // 2
        promoted = keys[mid]

        sibling = BPlusNode(is_leaf=False)
        sibling.keys = keys[mid + 1:]
        sibling.children = children[mid + 1:]

        node.keys = keys[:mid]
        node.children = children[:mid + 1]

        logger.debug("internal split: pushed up %r", promoted)
        return promoted, sibling

    # ─── Navigation ─────────────────────────────────────────────────

    def _find_leaf(self, key: Any, count: bool = False) -> BPlusNode:
        """Navigate from root to the leaf that should contain the key."""
        node = self._root
        if count:
            self._access_count += 1
        while not node.is_leaf:
            node = node.children[node.child_index(key)]
            if count:
                self._access_count += 1
        return node

    def _leftmost_leaf(self) -> BPlusNode:
        node = self._root
        while not node.is_leaf:
            node = node.children[0]
        return node

    def _leaves(self, start: Optional[BPlusNode] = None) -> Iterator[BPlusNode]:
        """Walk the leaf chain left to right from start (default leftmost)."""
        leaf = start if start is not None else self._leftmost_leaf()
        while leaf is not None:
            yield leaf
            leaf = leaf.next_leaf

    # ─── Range Queries ──────────────────────────────────────────────

    def _scan(self, low: Any = _UNBOUNDED,
              high: Any = _UNBOUNDED) -> Iterator[Tuple[Any, Any]]:
        """
        Yield (key, value) pairs with low <= key < high in ascending order.
        An omitted bound means unbounded on that side.
        """
        has_low = low is not _UNBOUNDED
        has_high = high is not _UNBOUNDED
        start = self._find_leaf(low) if has_low else None
        for leaf in self._leaves(start):
            for k, v in zip(leaf.keys, leaf.values):
                if has_low and k < low:
                    continue
                if has_high and k >= high:
                    return
                yield k, v

    def _snapshot(self, pairs: Iterator[Tuple[Any, Any]]) -> 'BPlusTreeMap':
        view = BPlusTreeMap(self._key_type, self._value_type, order=self._order)
        for k, v in pairs:
            view.put(k, v)
        view.reset_access_count()
        return view

    def head_map(self, to_key: Any) -> 'BPlusTreeMap':
        """Snapshot of all pairs with key < to_key."""
        self._check_key(to_key)
        return self._snapshot(self._scan(high=to_key))

    def tail_map(self, from_key: Any) -> 'BPlusTreeMap':
        """Snapshot of all pairs with key >= from_key."""
        self._check_key(from_key)
        return self._snapshot(self._scan(low=from_key))

    def sub_map(self, from_key: Any, to_key: Any) -> 'BPlusTreeMap':
        """Snapshot of all pairs with from_key <= key < to_key."""
        self._check_key(from_key)
        self._check_key(to_key)
        try:
            reversed_bounds = to_key < from_key
        except TypeError:
            raise TypeMismatchError(to_key, type(from_key), "key") from None
        if reversed_bounds:
            raise ValueError(f"from_key {from_key!r} > to_key {to_key!r}")
        return self._snapshot(self._scan(low=from_key, high=to_key))

    # ─── Size / Iteration ───────────────────────────────────────────

    def size(self) -> int:
        """Total key count across all leaves (full leaf-chain traversal)."""
        return sum(leaf.key_count for leaf in self._leaves())

    def __len__(self) -> int:
        return self.size()

    def __iter__(self) -> Iterator[Any]:
        for leaf in self._leaves():
            yield from list(leaf.keys)

    def entries(self) -> List[Tuple[Any, Any]]:
        """All (key, value) pairs in ascending key order."""
        return list(self._scan())

    # ─── Debug / Verification ───────────────────────────────────────

    def dump(self) -> str:
        """Pre-order rendering, one node per line, indented by level."""
        lines = ["BPlusTreeMap", "-------------------------------------------"]
        self._dump_node(self._root, 0, lines)
        lines.append("-------------------------------------------")
        return "\n".join(lines)

    def _dump_node(self, node: BPlusNode, level: int, lines: List[str]) -> None:
        keys = " . ".join(str(k) for k in node.keys)
        lines.append("\t" * level + (f"[ . {keys} . ]" if keys else "[ . ]"))
        for child in node.children:
            self._dump_node(child, level + 1, lines)

    def verify_structure(self) -> List[str]:
        """
        Verify tree structural integrity.
        Returns list of issues found (empty = healthy).
        """
        issues: List[str] = []
        leaf_depths: List[int] = []
        leaves_in_order: List[BPlusNode] = []
        self._verify_node(self._root, None, None, 1, issues,
                          leaf_depths, leaves_in_order.append)

        if len(set(leaf_depths)) > 1:
            issues.append(f"Leaves at unequal depths: {sorted(set(leaf_depths))}")
        elif leaf_depths and leaf_depths[0] != self._height:
            issues.append(f"Leaf depth {leaf_depths[0]} != height {self._height}")

        self._verify_leaf_chain(leaves_in_order, issues)
        return issues

    def _verify_node(self, node: BPlusNode, min_key: Any, max_key: Any,
                     depth: int, issues: List[str], leaf_depths: List[int],
                     on_leaf: Callable[[BPlusNode], None]) -> None:
        """Recursively verify a node and its children."""
        if node.key_count > self.max_keys:
            issues.append(f"Node at depth {depth}: {node.key_count} keys "
                          f"exceeds {self.max_keys}")

        # Keys must be strictly ascending
        for i in range(1, node.key_count):
            if not node.keys[i - 1] < node.keys[i]:
                issues.append(f"Node at depth {depth}: keys not ascending at position {i}")

        # Keys must be within bounds
        for k in node.keys:
            if min_key is not None and k < min_key:
                issues.append(f"Key {k!r} below parent separator {min_key!r}")
            if max_key is not None and k >= max_key:
                issues.append(f"Key {k!r} at/above parent separator {max_key!r}")

        if node.is_leaf:
            if len(node.values) != node.key_count:
                issues.append(f"Leaf at depth {depth}: values count mismatch")
            leaf_depths.append(depth)
            on_leaf(node)
            return

        if len(node.children) != node.key_count + 1:
            issues.append(f"Node at depth {depth}: children count mismatch")
            return

        for i, child in enumerate(node.children):
            lo = node.keys[i - 1] if i > 0 else min_key
            hi = node.keys[i] if i < node.key_count else max_key
            self._verify_node(child, lo, hi, depth + 1, issues, leaf_depths, on_leaf)

    def _verify_leaf_chain(self, expected: List[BPlusNode], issues: List[str]) -> None:
        """The next_leaf chain must visit exactly the tree's leaves, ascending."""
        chain: List[BPlusNode] = []
        visited = set()
        prev_max_key: Any = None
        for leaf in self._leaves():
            if id(leaf) in visited:
                issues.append("Leaf chain cycle")
                break
            visited.add(id(leaf))
            chain.append(leaf)
            if leaf.keys and prev_max_key is not None and not prev_max_key < leaf.keys[0]:
                issues.append(f"Leaf chain ordering broken at key {leaf.keys[0]!r}")
            if leaf.keys:
                prev_max_key = leaf.keys[-1]

        if [id(n) for n in chain] != [id(n) for n in expected]:
            issues.append("Leaf chain does not match in-order leaves")
