"""Shared synthetic images for the tracing tests."""

import numpy as np
import pytest


def make_rgba(h: int, w: int, color=(255, 255, 255, 255)) -> np.ndarray:
    img = np.empty((h, w, 4), dtype=np.uint8)
    img[:] = color
    return img


@pytest.fixture
def square_image():
    """200×200 white canvas with a black square covering x, y in [50, 150)."""
    img = make_rgba(200, 200)
    img[50:150, 50:150, :3] = 0
    return img


@pytest.fixture
def flat_image():
    return make_rgba(64, 48, color=(120, 30, 200, 255))


@pytest.fixture
def noise_image():
    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(40, 60, 4), dtype=np.uint8)


@pytest.fixture
def uniform_cost():
    """Cost field with no edges at all (every step costs its length)."""
    return np.ones((120, 160), dtype=np.float32)
