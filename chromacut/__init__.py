"""
ChromaCut: edge-snapping boundary tracer and background remover.
"""
from .models.image import Image
from .models.point import Anchor, Point
from .models.session_state import SessionState, SessionStateError
from .services.boundary_session import BoundarySession, PreviewRequest
from .services.edge_cost_service import EdgeCostService, build_cost_field
from .services.mask_service import (
    MaskService,
    composite_background,
    composite_extract,
    parse_color,
    rasterize_mask,
)
from .services.path_finding_service import PathFindingService, find_path, simplify_path
from .services.preview_scheduler import PreviewScheduler

__version__ = "1.0.0"

__all__ = [
    "Anchor",
    "BoundarySession",
    "EdgeCostService",
    "Image",
    "MaskService",
    "PathFindingService",
    "Point",
    "PreviewRequest",
    "PreviewScheduler",
    "SessionState",
    "SessionStateError",
    "build_cost_field",
    "composite_background",
    "composite_extract",
    "find_path",
    "parse_color",
    "rasterize_mask",
    "simplify_path",
]
