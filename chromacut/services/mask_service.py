from __future__ import annotations
import logging
import os
from typing import Sequence, Tuple, Union
import numpy as np
import cv2
from PIL import ImageColor
from dotenv import load_dotenv

from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MASK_THRESHOLD = int(os.getenv("MASK_THRESHOLD", "128"))
DEFAULT_BG_COLOR = os.getenv("DEFAULT_BG_COLOR", "#ffffff")

ColorLike = Union[str, Sequence[int]]


class MaskService:
    """
    Closed boundary → binary mask → composited pixels.

    Polygon vertices are pixel indices. The boundary pixels themselves belong
    to the region, so an axis-aligned rectangle with corners (x0, y0)-(x1, y1)
    covers x0 ≤ x ≤ x1, y0 ≤ y ≤ y1. The interior follows OpenCV's scanline
    fill, which pairs edge crossings per row (even-odd).
    """

    def __init__(self, threshold: int = MASK_THRESHOLD) -> None:
        self.threshold = threshold

    # ---------- rasterization ----------
    @staticmethod
    def rasterize(polygon: Sequence[Sequence[float]], width: int, height: int) -> np.ndarray:
        """
        Returns uint8 mask (H, W) with 255 inside the polygon, 0 outside.
        The polygon is implicitly closed (last vertex joins the first).
        """
        mask = np.zeros((height, width), dtype=np.uint8)
        pts = np.asarray(polygon, dtype=np.float64).reshape(-1, 2)
        if len(pts) < 3 or width <= 0 or height <= 0:
            return mask

        pts = np.rint(pts).astype(np.int32)
        cv2.fillPoly(mask, [pts.reshape(-1, 1, 2)], 255)
        return mask

    # ---------- compositing ----------
    @staticmethod
    def _check(pixels: np.ndarray, mask: np.ndarray) -> np.ndarray:
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA pixels, got shape {pixels.shape}")
        if mask.ndim == 3:
            mask = mask[:, :, 0]
        if mask.shape != pixels.shape[:2]:
            raise ValueError(f"Mask shape {mask.shape} does not match image {pixels.shape[:2]}")
        return mask

    def composite_background(self, pixels: np.ndarray, mask: np.ndarray, color: ColorLike) -> np.ndarray:
        """
        Outside the mask → solid `color` at full opacity; inside → untouched.
        """
        mask = self._check(pixels, mask)
        r, g, b = parse_color(color)
        out = pixels.copy()
        out[mask < self.threshold] = (r, g, b, 255)
        return out

    def composite_extract(self, pixels: np.ndarray, mask: np.ndarray) -> np.ndarray:
        """
        Outside the mask → fully transparent (RGB zeroed); inside → untouched.
        """
        mask = self._check(pixels, mask)
        out = pixels.copy()
        out[mask < self.threshold] = 0
        return out

    def apply(self, img: Image, polygon: Sequence[Sequence[float]], mode: str = "background",
              color: ColorLike = DEFAULT_BG_COLOR) -> Image:
        """Rasterize `polygon` over `img` and return a new composited Image."""
        mask = self.rasterize(polygon, img.width, img.height)
        if mode == "background":
            out = self.composite_background(img.pixels, mask, color)
        elif mode == "extract":
            out = self.composite_extract(img.pixels, mask)
        else:
            raise ValueError(f"Unknown output mode: {mode!r} (expected 'background' or 'extract')")
        logger.debug(f"Composited {mode}: {int((mask > 0).sum())} pixels inside the boundary")
        return Image(pixels=out)


def parse_color(color: ColorLike) -> Tuple[int, int, int]:
    """
    Accepts (r, g, b) or any CSS colour string Pillow understands
    ("#e6e6e6", "white", "rgb(10, 20, 30)").
    """
    if isinstance(color, str):
        rgb = ImageColor.getrgb(color)  # ValueError on unknown colours
        return int(rgb[0]), int(rgb[1]), int(rgb[2])

    try:
        values = [int(c) for c in color]
    except TypeError:
        raise ValueError(f"Unsupported colour value: {color!r}")
    if len(values) != 3 or any(c < 0 or c > 255 for c in values):
        raise ValueError(f"Colour must be three 0-255 channels, got {list(color)}")
    return values[0], values[1], values[2]


def rasterize_mask(polygon: Sequence[Sequence[float]], width: int, height: int) -> np.ndarray:
    return MaskService.rasterize(polygon, width, height)


def composite_background(pixels: np.ndarray, mask: np.ndarray, color: ColorLike) -> np.ndarray:
    return MaskService().composite_background(pixels, mask, color)


def composite_extract(pixels: np.ndarray, mask: np.ndarray) -> np.ndarray:
    return MaskService().composite_extract(pixels, mask)
