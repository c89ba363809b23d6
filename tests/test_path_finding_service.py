"""Unit tests for the windowed A* path finder.

Tests:
    - Degenerate start == goal
    - Endpoints equal the clamped inputs, steps are 8-connected
    - Path snaps onto zero-cost edges
    - Search window geometry and confinement
    - Straight-line fallback when the iteration cap is hit
    - Path simplification
"""

import logging
import numpy as np
import pytest

from chromacut.models.point import Point
from chromacut.services.edge_cost_service import EdgeCostService
from chromacut.services.path_finding_service import PathFindingService, find_path, simplify_path


def assert_8_connected(path):
    for a, b in zip(path, path[1:]):
        assert max(abs(a.x - b.x), abs(a.y - b.y)) == 1, (a, b)


@pytest.fixture
def finder():
    return PathFindingService()


@pytest.fixture
def square_cost(square_image):
    return EdgeCostService().build_cost_field(square_image, 1.5)


def test_same_point_returns_single_pixel(finder, uniform_cost):
    assert finder.find_path((20, 30), (20, 30), uniform_cost) == [Point(20, 30)]
    # rounding onto the same pixel counts too
    assert finder.find_path((20.2, 29.8), (19.9, 30.4), uniform_cost) == [Point(20, 30)]


def test_adjacent_pixels(finder, uniform_cost):
    assert finder.find_path((5, 5), (6, 6), uniform_cost) == [Point(5, 5), Point(6, 6)]


def test_endpoints_and_connectivity(finder, uniform_cost):
    path = finder.find_path((10, 10), (60, 40), uniform_cost)
    assert path[0] == Point(10, 10)
    assert path[-1] == Point(60, 40)
    assert_8_connected(path)
    assert all(isinstance(p.x, int) and isinstance(p.y, int) for p in path)


def test_inputs_are_clamped_and_rounded(finder, uniform_cost):
    path = finder.find_path((-5, -7), (30.4, 19.6), uniform_cost)
    assert path[0] == Point(0, 0)
    assert path[-1] == Point(30, 20)
    assert_8_connected(path)

    h, w = uniform_cost.shape
    path = finder.find_path((w + 50, h + 50), (w - 20, h - 10), uniform_cost)
    assert path[0] == Point(w - 1, h - 1)
    assert path[-1] == Point(w - 20, h - 10)


def test_clamp_point_rounds_half_up():
    assert PathFindingService.clamp_point((2.5, 3.5), 10, 10) == Point(3, 4)
    assert PathFindingService.clamp_point((-0.4, 9.6), 10, 10) == Point(0, 9)


def test_path_follows_edge(finder, square_cost):
    path = finder.find_path((50, 50), (149, 50), square_cost)
    assert path[0] == Point(50, 50)
    assert path[-1] == Point(149, 50)
    assert_8_connected(path)
    # the whole run stays on the zero-cost band of the top edge
    assert sum(float(square_cost[p.y, p.x]) for p in path) == 0.0
    assert all(49 <= p.y <= 50 for p in path)


def test_search_window_geometry():
    near = PathFindingService.search_window(Point(100, 100), Point(110, 100), 1000, 1000, 200)
    assert near == (50, 50, 160, 150)

    far = PathFindingService.search_window(Point(300, 300), Point(600, 700), 1000, 1000, 200)
    assert far == (200, 200, 700, 800)

    clamped = PathFindingService.search_window(Point(0, 0), Point(5, 5), 40, 30, 200)
    assert clamped == (0, 0, 39, 29)


def test_path_stays_inside_window(finder):
    cost = np.ones((400, 400), dtype=np.float32)
    start, goal = Point(150, 200), Point(250, 200)
    min_x, min_y, max_x, max_y = finder.search_window(start, goal, 400, 400, finder.max_window)
    path = finder.find_path(start, goal, cost)
    assert all(min_x <= p.x <= max_x and min_y <= p.y <= max_y for p in path)


def test_fallback_when_iterations_exhausted(uniform_cost, caplog):
    finder = PathFindingService(max_iterations=1)
    with caplog.at_level(logging.WARNING):
        path = finder.find_path((5, 5), (100, 80), uniform_cost)
    assert path == [Point(5, 5), Point(100, 80)]
    assert "falling back" in caplog.text


def test_is_deterministic(finder, square_cost):
    a = finder.find_path((40, 60), (160, 140), square_cost)
    b = finder.find_path((40, 60), (160, 140), square_cost)
    assert a == b


def test_module_level_helper(uniform_cost):
    path = find_path((1, 1), (20, 9), uniform_cost, max_window=150)
    assert path[0] == Point(1, 1) and path[-1] == Point(20, 9)


def test_simplify_drops_collinear_points():
    points = [Point(0, 0), Point(1, 0), Point(2, 0), Point(3, 0)]
    assert simplify_path(points) == [Point(0, 0), Point(3, 0)]


def test_simplify_keeps_corners_above_tolerance():
    points = [Point(0, 0), Point(1, 0), Point(2, 0), Point(2, 1), Point(2, 2)]
    assert simplify_path(points, tolerance=0.5) == [Point(0, 0), Point(2, 0), Point(2, 2)]


def test_simplify_short_paths_unchanged():
    assert simplify_path([(3, 4)]) == [Point(3, 4)]
    assert simplify_path([(3, 4), (8, 9)]) == [Point(3, 4), Point(8, 9)]


def test_non_finite_inputs_are_clamped(finder, uniform_cost):
    h, w = uniform_cost.shape
    path = finder.find_path((float("nan"), float("-inf")), (float("inf"), 20), uniform_cost)
    assert path[0] == Point(0, 0)
    assert path[-1] == Point(w - 1, 20)
    assert PathFindingService.clamp_coordinate(float("nan"), 9) == 0.0
