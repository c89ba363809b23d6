import logging
import math
import os
import numpy as np
from dotenv import load_dotenv

from ..repositories.gradient_repository import GradientRepository

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SENSITIVITY = float(os.getenv("EDGE_SENSITIVITY", "1.5"))


class EdgeCostService:
    """
    Turns pixels into a per-pixel traversal cost for the path finder.
    Strong edges (high gradient) → cost near 0, flat areas → cost near 1.
    """

    def __init__(self) -> None:
        self.repo = GradientRepository()

    @staticmethod
    def _check_pixels(pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA pixels, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("Pixel buffer is empty")

    @staticmethod
    def _check_sensitivity(sensitivity: float) -> float:
        sensitivity = float(sensitivity)
        if not math.isfinite(sensitivity) or sensitivity <= 0:
            raise ValueError(f"Sensitivity must be a positive number, got {sensitivity}")
        return sensitivity

    def compute_gradient(self, pixels: np.ndarray) -> np.ndarray:
        """Normalized gradient magnitude, reusable across sensitivity changes."""
        self._check_pixels(pixels)
        return self.repo.retrieve_gradient(pixels)

    def gradient_to_cost(self, gradient: np.ndarray, sensitivity: float = DEFAULT_SENSITIVITY) -> np.ndarray:
        """
        cost = 1 - min(gradient * sensitivity, 1), clamped to [0, 1].
        """
        sensitivity = self._check_sensitivity(sensitivity)
        cost = 1.0 - np.minimum(gradient * np.float32(sensitivity), 1.0)
        return np.clip(cost, 0.0, 1.0).astype(np.float32)

    def build_cost_field(self, pixels: np.ndarray, sensitivity: float = DEFAULT_SENSITIVITY) -> np.ndarray:
        """
        Args
        ----
        pixels      : np.ndarray  (H, W, 4)  uint8  RGBA
        sensitivity : edge gain, recommended range 0.5‑3.0

        Returns
        -------
        cost : np.ndarray  (H, W)  float32  [0, 1]
        """
        sensitivity = self._check_sensitivity(sensitivity)
        gradient = self.compute_gradient(pixels)
        cost = self.gradient_to_cost(gradient, sensitivity)
        logger.debug(
            f"Cost field {pixels.shape[1]}x{pixels.shape[0]} built "
            f"(sensitivity={sensitivity}, edge pixels={int((cost == 0).sum())})"
        )
        return cost


def build_cost_field(pixels: np.ndarray, sensitivity: float = DEFAULT_SENSITIVITY) -> np.ndarray:
    return EdgeCostService().build_cost_field(pixels, sensitivity)
