"""
Windowed A* over the edge cost field.

The search is confined to a box around the two endpoints so the amount of
work depends on the distance between clicks, not on the image size.
"""
from __future__ import annotations
import heapq
import logging
import math
import os
from typing import List, Sequence, Tuple
import numpy as np
from dotenv import load_dotenv

from ..models.point import Point

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MAX_WINDOW = int(os.getenv("PATH_MAX_WINDOW", "200"))
MAX_ITERATIONS = int(os.getenv("PATH_MAX_ITERATIONS", "10000"))
MIN_WINDOW = 100

SQRT2 = math.sqrt(2.0)
# (dx, dy, step length)
NEIGHBOURS = (
    (-1, 0, 1.0), (1, 0, 1.0),
    (0, -1, 1.0), (0, 1, 1.0),
    (-1, -1, SQRT2), (-1, 1, SQRT2),
    (1, -1, SQRT2), (1, 1, SQRT2),
)


class PathFindingService:
    """
    Stateless lowest-cost path search between two pixels.

    Ties on f = g + h are broken by insertion order: the entry pushed first
    is expanded first. Any other tie rule gives a different but equally
    valid path on cost ties.
    """

    def __init__(self, max_window: int = MAX_WINDOW, max_iterations: int = MAX_ITERATIONS):
        self.max_window = max_window
        self.max_iterations = max_iterations

    # ---------- geometry helpers ----------
    @staticmethod
    def clamp_coordinate(value: float, upper: float) -> float:
        """Clamp into [0, upper]; NaN goes to 0 and ±inf to the nearest edge."""
        value = float(value)
        if math.isnan(value):
            return 0.0
        return min(max(value, 0.0), float(upper))

    @classmethod
    def clamp_point(cls, point: Sequence[float], width: int, height: int) -> Point:
        """Round half up (like a pixel grid snap) and clamp into the image."""
        x = math.floor(cls.clamp_coordinate(point[0], width - 1) + 0.5)
        y = math.floor(cls.clamp_coordinate(point[1], height - 1) + 0.5)
        return Point(x, y)

    @staticmethod
    def search_window(
        start: Point,
        goal: Point,
        width: int,
        height: int,
        max_window: int = MAX_WINDOW,
    ) -> Tuple[int, int, int, int]:
        """
        Bounding box of start/goal grown by half the adaptive window on each
        side, clamped to the image. Returns (min_x, min_y, max_x, max_y).
        """
        distance = start.distance_to(goal)
        window = min(max_window, max(MIN_WINDOW, distance * 1.5))
        half = window / 2
        min_x = max(0, math.floor(min(start.x, goal.x) - half))
        min_y = max(0, math.floor(min(start.y, goal.y) - half))
        max_x = min(width - 1, math.ceil(max(start.x, goal.x) + half))
        max_y = min(height - 1, math.ceil(max(start.y, goal.y) + half))
        return min_x, min_y, max_x, max_y

    # ---------- public API ----------
    def find_path(
        self,
        start: Sequence[float],
        goal: Sequence[float],
        cost_map: np.ndarray,
        max_window: int | None = None,
    ) -> List[Point]:
        """
        Args
        ----
        start, goal : (x, y) in image pixels, any precision; clamped.
        cost_map    : np.ndarray  (H, W)  float32  [0, 1]

        Returns
        -------
        8-connected list of integer Points from start to goal inclusive, or
        the two-point fallback [start, goal] when the search gives up.
        """
        height, width = cost_map.shape[:2]
        start = self.clamp_point(start, width, height)
        goal = self.clamp_point(goal, width, height)
        if start == goal:
            return [start]

        min_x, min_y, max_x, max_y = self.search_window(
            start, goal, width, height,
            self.max_window if max_window is None else max_window,
        )
        ww = max_x - min_x + 1
        # plain lists are much faster than numpy scalar indexing in the hot loop
        costs = cost_map[min_y:max_y + 1, min_x:max_x + 1].tolist()

        n = ww * (max_y - min_y + 1)
        g = [math.inf] * n
        parent = [-1] * n
        closed = bytearray(n)

        gx, gy = goal
        s = (start.y - min_y) * ww + (start.x - min_x)
        g[s] = 0.0
        heap = [(math.hypot(start.x - gx, start.y - gy), 0, s)]
        counter = 1
        expanded = 0

        while heap and expanded < self.max_iterations:
            _, _, cur = heapq.heappop(heap)
            if closed[cur]:
                continue  # stale entry superseded by a cheaper push
            expanded += 1

            row, col = divmod(cur, ww)
            x, y = col + min_x, row + min_y
            if abs(x - gx) <= 1 and abs(y - gy) <= 1:
                return self._reconstruct(cur, parent, ww, min_x, min_y, goal)

            closed[cur] = 1
            g_cur = g[cur]
            for dx, dy, step in NEIGHBOURS:
                nx, ny = x + dx, y + dy
                if nx < min_x or nx > max_x or ny < min_y or ny > max_y:
                    continue
                ni = cur + dy * ww + dx
                if closed[ni]:
                    continue
                tentative = g_cur + costs[ny - min_y][nx - min_x] * step
                if tentative < g[ni]:
                    g[ni] = tentative
                    parent[ni] = cur
                    heapq.heappush(heap, (tentative + math.hypot(nx - gx, ny - gy), counter, ni))
                    counter += 1

        logger.warning(
            f"Path search gave up after {expanded} expansions "
            f"({start} → {goal}); falling back to a straight segment"
        )
        return [start, goal]

    @staticmethod
    def _reconstruct(node: int, parent: List[int], ww: int, min_x: int, min_y: int, goal: Point) -> List[Point]:
        path: List[Point] = []
        while node != -1:
            row, col = divmod(node, ww)
            path.append(Point(col + min_x, row + min_y))
            node = parent[node]
        path.reverse()
        # terminal node may be a neighbour of the goal
        if path[-1] != goal:
            path.append(goal)
        return path

    # ---------- post-processing ----------
    @staticmethod
    def _perpendicular_distance(point: Point, line_start: Point, line_end: Point) -> float:
        dx = line_end.x - line_start.x
        dy = line_end.y - line_start.y
        mag = math.hypot(dx, dy)
        if mag < 0.001:
            return 0.0
        u = ((point.x - line_start.x) * dx + (point.y - line_start.y) * dy) / (mag * mag)
        closest = Point(line_start.x + u * dx, line_start.y + u * dy)
        return point.distance_to(closest)

    def simplify_path(self, points: Sequence[Point], tolerance: float = 1.0) -> List[Point]:
        """
        Drop points lying within `tolerance` of the line joining the last kept
        point and the next point. Endpoints are always kept.
        """
        points = [Point(*p) for p in points]
        if len(points) <= 2:
            return points

        simplified = [points[0]]
        for i in range(1, len(points) - 1):
            if self._perpendicular_distance(points[i], simplified[-1], points[i + 1]) > tolerance:
                simplified.append(points[i])
        simplified.append(points[-1])
        return simplified


def find_path(
    start: Sequence[float],
    goal: Sequence[float],
    cost_map: np.ndarray,
    max_window: int = MAX_WINDOW,
    max_iterations: int = MAX_ITERATIONS,
) -> List[Point]:
    return PathFindingService(max_window, max_iterations).find_path(start, goal, cost_map)


def simplify_path(points: Sequence[Point], tolerance: float = 1.0) -> List[Point]:
    return PathFindingService().simplify_path(points, tolerance)
