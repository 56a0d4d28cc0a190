"""Height-range routing across access node eras."""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .config import MAX_HEIGHT, NodeDescriptor
from .errors import NoCoverageError


@dataclass(frozen=True)
class QueryRange:
    start: int
    end: int

    def __post_init__(self):
        if not (0 <= self.start <= MAX_HEIGHT and 0 <= self.end <= MAX_HEIGHT):
            raise ValueError(f"Heights must be in [0, {MAX_HEIGHT}], got [{self.start}, {self.end}]")
        if self.start > self.end:
            raise ValueError(f"Range start {self.start} is after end {self.end}")


@dataclass(frozen=True)
class Segment:
    node: NodeDescriptor
    start: int
    end: int


def locate(height: int, nodes: Sequence[NodeDescriptor]) -> NodeDescriptor:
    """Return the node answering for ``height``.

    Every node is checked and the last match in directory order wins, so with
    overlapping entries the one listed later is used.
    """
    match: Optional[NodeDescriptor] = None
    for node in nodes:
        if node.covers(height):
            match = node
    if match is None:
        raise NoCoverageError(height)
    return match


def route(query: QueryRange, nodes: Sequence[NodeDescriptor]) -> List[Segment]:
    """Split ``query`` into contiguous ascending segments, one per era touched."""
    segments: List[Segment] = []
    cursor = query.start
    while cursor <= query.end:
        node = locate(cursor, nodes)
        end = query.end if node.is_unbounded else min(query.end, node.end_height)
        segments.append(Segment(node, cursor, end))
        cursor = end + 1
    return segments


def select_current(nodes: Sequence[NodeDescriptor]) -> NodeDescriptor:
    """Pick the node with the greatest start height; ties keep the earlier one."""
    current: Optional[NodeDescriptor] = None
    for node in nodes:
        if current is None or current.start_height < node.start_height:
            current = node
    if current is None:
        raise NoCoverageError()
    return current
