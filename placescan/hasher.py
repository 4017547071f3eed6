from __future__ import annotations

import hashlib
from typing import Any, List


def _collect_entries(node: Any, out: List[str]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_entries(item, out)
        return
    if not isinstance(node, dict):
        return
    path = node.get("path")
    if isinstance(path, str) and path:
        class_name = node.get("class_name")
        name = node.get("name")
        out.append(
            f"{class_name if isinstance(class_name, str) else ''}:"
            f"{name if isinstance(name, str) else ''}:{path}"
        )
    children = node.get("children")
    if children is not None:
        _collect_entries(children, out)


def tree_entries(tree: Any) -> List[str]:
    """Sorted `class:name:path` records for every node that has a path."""
    entries: List[str] = []
    _collect_entries(tree, entries)
    entries.sort()
    return entries


# Sorting first makes the hash independent of the order services were walked.
def compute_tree_hash(tree: Any) -> str:
    hasher = hashlib.sha256()
    for entry in tree_entries(tree):
        hasher.update(entry.encode("utf-8"))
        hasher.update(b"\n")
    return hasher.hexdigest()
