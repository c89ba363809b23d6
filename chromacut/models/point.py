from __future__ import annotations
from dataclasses import dataclass
from typing import NamedTuple
import math


class Point(NamedTuple):
    """
    2D coordinate in image pixel space.
    Floats for raw cursor input, ints for path vertices.
    """
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True)
class Anchor:
    """
    A user-committed waypoint. The id only correlates anchors with UI
    markers; ordering comes from the session's anchor list.
    """
    point: Point
    id: int
