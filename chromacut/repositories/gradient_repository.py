import cv2
import numpy as np

# smallest real gradient is ~0.1 (one blue level); anything below is rounding
FLAT_EPSILON = 1e-3


class GradientRepository:
    """
    One-image Sobel gradient extraction.

    • Converts RGBA → luminance (0.299 R + 0.587 G + 0.114 B, alpha ignored).
    • 3×3 Sobel Gx / Gy, magnitude, border pixels forced to zero.
    • Normalizes by the global maximum → float32 (H, W) in [0, 1].
    """

    # ---------- private helpers ----------
    @staticmethod
    def _luminance(rgba: np.ndarray) -> np.ndarray:
        # float32 input keeps cvtColor from rounding to uint8
        return cv2.cvtColor(rgba.astype(np.float32), cv2.COLOR_RGBA2GRAY)

    @staticmethod
    def _sobel_magnitude(gray: np.ndarray) -> np.ndarray:
        gx = cv2.Sobel(gray, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(gray, cv2.CV_32F, 0, 1, ksize=3)
        mag = cv2.magnitude(gx, gy)

        # only interior pixels have a full 3×3 neighbourhood
        mag[0, :] = 0
        mag[-1, :] = 0
        mag[:, 0] = 0
        mag[:, -1] = 0
        return mag

    # ---------- public API ----------
    def retrieve_gradient(self, rgba: np.ndarray) -> np.ndarray:
        """
        Returns float32 gradient magnitude (H, W) normalized to [0, 1].
        A flat image yields all zeros.
        """
        h, w = rgba.shape[:2]
        if h < 3 or w < 3:
            return np.zeros((h, w), dtype=np.float32)

        mag = self._sobel_magnitude(self._luminance(rgba))
        peak = float(mag.max())
        if peak <= FLAT_EPSILON:
            # float noise on a flat image must not be stretched up to 1
            return np.zeros((h, w), dtype=np.float32)
        return mag / np.float32(peak)
