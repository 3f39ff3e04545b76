"""
Tree Integrity — parent/child bookkeeping over the entry index

All functions operate on the store's ``{id: MemoryEntry}`` mapping and
assume the caller already holds the store lock. The check and the attach
must happen inside the same critical section.
"""

from __future__ import annotations

from typing import Dict, List, Set

from hiermem.types import MemoryEntry

Index = Dict[str, MemoryEntry]


def detect_cycle(index: Index, parent_id: str, child_id: str) -> bool:
    """Return True if making ``child_id`` a child of ``parent_id`` would loop.

    Walks the ``parent_id`` chain upward from ``parent_id``. Reaching
    ``child_id`` or revisiting a node is a cycle; reaching a root (or a
    dangling reference) is not.
    """
    visited: Set[str] = set()
    current = parent_id
    while current:
        if current == child_id or current in visited:
            return True
        visited.add(current)
        entry = index.get(current)
        if entry is None:
            break
        current = entry.parent_id
    return False


def attach_child(index: Index, parent_id: str, child_id: str) -> None:
    """Record ``child_id`` in the parent's children list (idempotent)."""
    children = index[parent_id].children
    if child_id not in children:
        children.append(child_id)


def detach_child(index: Index, parent_id: str, child_id: str) -> None:
    """Drop ``child_id`` from the parent's children list, if both exist."""
    parent = index.get(parent_id)
    if parent is not None:
        parent.children[:] = [c for c in parent.children if c != child_id]


def collect_subtree(index: Index, root_id: str) -> List[str]:
    """Post-order IDs of ``root_id`` and all its descendants.

    Descendants come before their ancestors, ``root_id`` last. Unknown
    child references are skipped.
    """
    if root_id not in index:
        return []
    order: List[str] = []
    seen: Set[str] = {root_id}
    # Iterative so deep chains do not hit the recursion limit
    stack = [(root_id, iter(index[root_id].children))]
    while stack:
        node_id, pending = stack[-1]
        for child_id in pending:
            if child_id in index and child_id not in seen:
                seen.add(child_id)
                stack.append((child_id, iter(index[child_id].children)))
                break
        else:
            stack.pop()
            order.append(node_id)
    return order


def check_forest(index: Index) -> List[str]:
    """Return a list of integrity violations (empty = consistent).

    Checks both directions of the parent/children link and that every
    parent chain terminates.
    """
    problems: List[str] = []
    for entry_id, entry in index.items():
        if entry.parent_id is not None:
            parent = index.get(entry.parent_id)
            if parent is None:
                problems.append(f"{entry_id}: parent {entry.parent_id} missing")
            elif parent.children.count(entry_id) != 1:
                problems.append(
                    f"{entry_id}: listed {parent.children.count(entry_id)} "
                    f"time(s) in parent {entry.parent_id}"
                )
            if detect_cycle(index, entry.parent_id, entry_id):
                problems.append(f"{entry_id}: parent chain loops")
        for child_id in entry.children:
            child = index.get(child_id)
            if child is None:
                problems.append(f"{entry_id}: child {child_id} missing")
            elif child.parent_id != entry_id:
                problems.append(f"{entry_id}: child {child_id} points elsewhere")
    return problems
