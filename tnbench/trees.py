"""Tree shapes for composed-stream benchmarks.

Streams are laid out breadth first. With six streams and a branching
factor of three, node 0 has children 1, 2, 3 and node 1 has children 4, 5;
the leaves (2, 3, 4, 5) are primitive streams and node 0 is queried.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field


@dataclass
class TreeNode:
    """A stream in the tree; ``parent`` is -1 for the root."""

    parent: int
    index: int
    is_leaf: bool
    children: list[int] = field(default_factory=list)


@dataclass
class Tree:
    """A breadth-first stream tree."""

    nodes: list[TreeNode]
    max_depth: int
    qty_streams: int
    branching_factor: int

    def to_display(self, index: int = 0) -> str:
        """Return one "parent child" line per edge below ``index``, breadth first."""
        queue = deque([index])
        visited: set[int] = set()
        lines: list[str] = []
        while queue:
            current = queue.popleft()
            visited.add(current)
            for child in self.nodes[current].children:
                if child not in visited:
                    queue.append(child)
                    lines.append(f"{current} {child}")
        return "\n".join(lines)


def calculate_tree_depth(qty_streams: int, branching_factor: int) -> int:
    """Estimate tree depth as ceil(log(qty_streams) / log(branching_factor)).

    A branching factor of one gives a chain, whose depth is the stream count.
    """
    if qty_streams < 1 or branching_factor < 1:
        raise ValueError("qty_streams and branching_factor must be positive")
    if branching_factor == 1:
        return qty_streams
    return math.ceil(math.log(qty_streams) / math.log(branching_factor))


def new_tree(qty_streams: int, branching_factor: int) -> Tree:
    """Build a tree of ``qty_streams`` nodes, filling each level left to right."""
    max_depth = calculate_tree_depth(qty_streams, branching_factor)
    nodes = [TreeNode(parent=-1, index=0, is_leaf=qty_streams == 1)]

    queue = deque([0])
    while queue and len(nodes) < qty_streams:
        parent = nodes[queue.popleft()]
        count = min(branching_factor, qty_streams - len(nodes))
        for child_index in range(len(nodes), len(nodes) + count):
            nodes.append(TreeNode(parent=parent.index, index=child_index, is_leaf=True))
            parent.children.append(child_index)
            queue.append(child_index)
        if count:
            parent.is_leaf = False

    return Tree(
        nodes=nodes,
        max_depth=max_depth,
        qty_streams=qty_streams,
        branching_factor=branching_factor,
    )