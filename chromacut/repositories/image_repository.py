from pathlib import Path
from typing import Union, Iterable, Iterator
import logging
import os
import numpy as np
import cv2
from PIL import Image as PILImage
from dotenv import load_dotenv
from ..models.image import Image

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_EXTS = ".png,.jpg,.jpeg,.bmp,.tif,.tiff,.webp"


class ImageRepository:
    """
    Handles file I/O for Image entities.

    Everything that leaves this class is normalized to (H, W, 4) uint8 RGBA,
    which is the only layout the tracing core understands.
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", DEFAULT_EXTS)
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def create_image(pixels: np.ndarray, path: Union[str, Path] = None) -> Image:
        if path is None:
            return Image(pixels)
        return Image(pixels=pixels, path=Path(path))

    @staticmethod
    def to_rgba(arr: np.ndarray, bgr: bool = False) -> np.ndarray:
        """
        Normalize gray / 3-channel / 4-channel arrays to RGBA uint8.
        bgr : input channel order is OpenCV's BGR(A) instead of RGB(A).
        """
        if arr.dtype != np.uint8:
            if arr.dtype == np.uint16:
                arr = (arr >> 8).astype(np.uint8)
            else:
                arr = np.clip(arr, 0, 255).astype(np.uint8)

        if arr.ndim == 2:
            return cv2.cvtColor(arr, cv2.COLOR_GRAY2RGBA)
        if arr.ndim != 3:
            raise ValueError(f"Unsupported pixel array shape: {arr.shape}")

        channels = arr.shape[2]
        if channels == 1:
            return cv2.cvtColor(arr[:, :, 0], cv2.COLOR_GRAY2RGBA)
        if channels == 3:
            code = cv2.COLOR_BGR2RGBA if bgr else cv2.COLOR_RGB2RGBA
            return cv2.cvtColor(arr, code)
        if channels == 4:
            return cv2.cvtColor(arr, cv2.COLOR_BGRA2RGBA) if bgr else arr.copy()
        raise ValueError(f"Unsupported channel count: {channels}")

    @classmethod
    def decode(cls, data: bytes, path: Union[str, Path] = None) -> Image:
        """Decode an encoded image (PNG/JPEG/TIFF/...) held in memory."""
        buf = np.frombuffer(data, dtype=np.uint8)
        arr = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
        if arr is None:
            raise ValueError("Image data could not be decoded")
        return cls.create_image(cls.to_rgba(arr, bgr=True), path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> Image:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        return Image(pixels=cls.to_rgba(arr, bgr=True), path=path)

    @staticmethod
    def save(image: Image) -> None:
        if image.path is None:
            raise ValueError("Image has no destination path")
        path = Path(image.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pil_img = PILImage.fromarray(image.pixels)
        if path.suffix.lower() in {".jpg", ".jpeg"}:
            # JPEG has no alpha channel
            pil_img = pil_img.convert("RGB")
        pil_img.save(path)

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Image]:
        """
        Yield Image objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield self.load(p)
            except (FileNotFoundError, ValueError) as err:
                logger.warning(f"Skipping {p.name}: {err}")
