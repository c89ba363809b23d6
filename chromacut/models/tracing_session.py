from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING
import numpy as np
from .image import Image

if TYPE_CHECKING:
    from ..services.boundary_session import BoundarySession


@dataclass
class TracingSession:
    """
    Everything held for one uploaded image: the pixels, the normalized
    gradient (so sensitivity changes skip the Sobel pass) and the
    boundary session built on the current cost field.
    """
    session_id: str
    image: Image
    gradient: np.ndarray # (H, W) float32 [0, 1]
    sensitivity: float
    boundary: BoundarySession
