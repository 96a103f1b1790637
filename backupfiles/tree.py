"""
Directory tree summary for the selected files.

The selected paths are inserted into a tree of :class:`TreeNode` objects
rooted at the project folder.  Directories holding a single entry are then
marked collapsible so that chains like ``utils/helpers.js`` render on one
line.  Rendering lists subdirectories before files and uses the usual
line-drawing connectors::

    project./
        └── src/
            ├── utils/helpers.js
            └── app.js
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .scanner import SelectedFile

BRANCH = "├── "
LAST_BRANCH = "└── "
PIPE_INDENT = "│   "
SPACE_INDENT = "    "
SKIPPED_MARKER = " (skipped)"


@dataclass
class TreeNode:
    name: str
    is_file: bool = False
    is_skipped: bool = False
    children: Dict[str, "TreeNode"] = field(default_factory=dict)
    is_collapsible: bool = False


def build_tree(files: Iterable[SelectedFile], root_name: str) -> TreeNode:
    """Build a tree from root-relative paths; inserting a path twice is harmless."""
    root = TreeNode(root_name)
    for selected in files:
        parts = [part for part in selected.path.replace("\\", "/").split("/") if part and part != "."]
        if not parts:
            continue
        current = root
        for depth, part in enumerate(parts):
            is_last = depth == len(parts) - 1
            node = current.children.get(part)
            if node is None:
                node = TreeNode(part, is_file=is_last, is_skipped=is_last and selected.tree_only)
                current.children[part] = node
            elif is_last and node.is_file:
                # Only skipped if every selection of this path was tree-only.
                node.is_skipped = node.is_skipped and selected.tree_only
            current = node
    return root


def mark_collapsible(node: TreeNode, is_root: bool = True) -> None:
    """Mark nodes that can be folded into their parent's display line."""
    if node.is_file:
        node.is_collapsible = True
        return
    if not is_root and len(node.children) == 1:
        child = next(iter(node.children.values()))
        mark_collapsible(child, False)
        node.is_collapsible = child.is_collapsible
    else:
        node.is_collapsible = False
        for child in node.children.values():
            mark_collapsible(child, False)


def _file_label(node: TreeNode) -> str:
    return node.name + (SKIPPED_MARKER if node.is_skipped else "")


def _traverse(node: TreeNode, indent: str, lines: List[str], is_last: bool, is_root: bool) -> None:
    connector = LAST_BRANCH if is_last else BRANCH
    if node.is_file:
        lines.append(indent + connector + _file_label(node))
        return

    if node.is_collapsible and not is_root:
        parts = []
        current = node
        while current.is_collapsible and not current.is_file:
            parts.append(current.name)
            current = next(iter(current.children.values()))
        parts.append(_file_label(current))
        lines.append(indent + connector + "/".join(parts))
        return

    if is_root:
        lines.append(node.name + "./")
    else:
        lines.append(indent + connector + node.name + "/")

    directories = [child for child in node.children.values() if not child.is_file]
    files = [child for child in node.children.values() if child.is_file]
    total = len(directories) + len(files)
    sub_indent = indent + (SPACE_INDENT if is_last else PIPE_INDENT)
    for index, child in enumerate(directories + files, start=1):
        _traverse(child, sub_indent, lines, index == total, False)


def render_tree(root: TreeNode) -> List[str]:
    """Return the display lines for a tree built by :func:`build_tree`."""
    mark_collapsible(root, True)
    lines: List[str] = []
    _traverse(root, "", lines, True, True)
    return lines


def render_selection(files: Iterable[SelectedFile], root_name: str) -> str:
    return "\n".join(render_tree(build_tree(files, root_name)))
