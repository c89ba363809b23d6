"""
Background Replacer Pipeline
Non-interactive trace: anchors in, composited image out.
Used by the CLI and handy for scripted batch edits.
"""
from __future__ import annotations
from pathlib import Path
import os
from typing import List, Sequence
from dotenv import load_dotenv

from ..models.image import Image
from ..models.point import Point
from ..services.boundary_session import BoundarySession
from ..services.edge_cost_service import DEFAULT_SENSITIVITY, EdgeCostService
from ..services.mask_service import DEFAULT_BG_COLOR, ColorLike, MaskService
from ..services.path_finding_service import PathFindingService

# ------------------------------------------------------------------
# env‑vars
load_dotenv()
OUTPUT_DIR = os.getenv("OUTPUT_DIR_PATH", "data/output")


# ------------------------------------------------------------------
def trace_boundary(
    img: Image,
    anchors: Sequence[Sequence[float]],
    *,
    sensitivity: float = DEFAULT_SENSITIVITY,
    edge_cost_service: EdgeCostService | None = None,
    path_finder: PathFindingService | None = None,
) -> List[Point]:
    """
    Feed `anchors` into a fresh session and close it back at the first one.
    Returns the closed, edge-snapped polyline.
    """
    if len(anchors) < 3:
        raise ValueError(f"A closed boundary needs at least 3 anchors, got {len(anchors)}")

    edge_cost_service = edge_cost_service or EdgeCostService()
    cost_map = edge_cost_service.build_cost_field(img.pixels, sensitivity)
    session = BoundarySession(cost_map, path_finder=path_finder)

    for point in anchors:
        session.add_anchor(point)

    first = session.anchors[0].point
    return session.try_close(first, snap_radius=0)


def replace_background(
    img: Image,
    anchors: Sequence[Sequence[float]],
    *,
    mode: str = "background",
    color: ColorLike = DEFAULT_BG_COLOR,
    sensitivity: float = DEFAULT_SENSITIVITY,
    mask_service: MaskService | None = None,
    output_path: str | Path | None = None,
) -> Image:
    """
    For one Image:
        • snap the anchor polygon to edges
        • rasterize it into a mask
        • recolour the background (mode="background") or cut the object
          out onto transparency (mode="extract")
    Returns a new Image; the source pixels are left untouched.
    """
    polygon = trace_boundary(img, anchors, sensitivity=sensitivity)
    result = (mask_service or MaskService()).apply(img, polygon, mode=mode, color=color)
    if output_path is not None:
        result.path = Path(output_path)
    elif img.path is not None:
        result.path = Path(OUTPUT_DIR) / f"{Path(img.path).stem}_{mode}.png"
    return result
