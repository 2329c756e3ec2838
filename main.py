"""
MiniIndex — In-Memory Index Maps
================================
Driver for manual inspection of the index maps.

Usage:
    python main.py hash [--keys N] [--size N] [--verbose]
    python main.py tree [--keys N] [--order N] [--verbose]

Inserts the odd keys 1, 3, 5, ... below N (value = key * key), prints the
structure, looks up every key below N and reports the average number of
buckets / nodes accessed per key.
"""

import logging
import sys
from typing import List, Optional

from indexing.bptree import ORDER, BPlusTreeMap
from indexing.linear_hash import LinearHashMap


def print_help():
    print("""
MiniIndex — In-Memory Index Maps

Usage:
    python main.py hash [--keys N] [--size N]     Linear hash map demo
    python main.py tree [--keys N] [--order N]    B+ Tree map demo

Options:
    --help          Show this help
    --keys N        Insert odd keys below N (default: 30 hash, 10 tree)
    --size N        Initial home buckets for the hash map (default: 11)
    --order N       B+ Tree fanout (default: 5)
    --verbose       Log splits to stderr
""")


def run_demo(index_map, total_keys: int) -> None:
    """Populate, dump, and probe a map; prints results to stdout."""
    for i in range(1, total_keys, 2):
        index_map.put(i, i * i)
    print(index_map.dump())

    index_map.reset_access_count()
    for i in range(total_keys):
        print(f"key = {i} value = {index_map.get(i)}")
    print("-------------------------------------------")

    unit = "buckets" if isinstance(index_map, LinearHashMap) else "nodes"
    average = index_map.access_count / total_keys if total_keys else 0.0
    print(f"Average number of {unit} accessed = {average}")


def _int_option(args: List[str], i: int) -> int:
    try:
        value = int(args[i + 1])
    except ValueError:
        print(f"Error: {args[i]} expects an integer, got {args[i + 1]!r}",
              file=sys.stderr)
        sys.exit(1)
    if value < 0:
        print(f"Error: {args[i]} must be non-negative", file=sys.stderr)
        sys.exit(1)
    return value


def main(argv: Optional[List[str]] = None) -> None:
    """Parse CLI arguments and dispatch."""
    args = sys.argv[1:] if argv is None else argv

    if not args or "--help" in args or "-h" in args:
        print_help()
        return

    mode = None
    total_keys = None
    size = 11
    order = ORDER
    verbose = False

    i = 0
    while i < len(args):
        if args[i] == "--keys" and i + 1 < len(args):
            total_keys = _int_option(args, i)
            i += 2
        elif args[i] == "--size" and i + 1 < len(args):
            size = _int_option(args, i)
            i += 2
        elif args[i] == "--order" and i + 1 < len(args):
            order = _int_option(args, i)
            i += 2
        elif args[i] == "--verbose":
            verbose = True
            i += 1
        elif args[i] in ("hash", "tree") and mode is None:
            mode = args[i]
            i += 1
        else:
            print(f"Unknown option: {args[i]}", file=sys.stderr)
            print_help()
            sys.exit(1)

    if mode is None:
        print("Error: choose 'hash' or 'tree'", file=sys.stderr)
        sys.exit(1)

    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
                            format="%(levelname)s %(name)s: %(message)s")

    try:
        if mode == "hash":
            index_map = LinearHashMap(int, int, size)
            run_demo(index_map, 30 if total_keys is None else total_keys)
        else:
            index_map = BPlusTreeMap(int, int, order=order)
            run_demo(index_map, 10 if total_keys is None else total_keys)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
