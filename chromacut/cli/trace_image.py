import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..models.image import Image
from ..pipeline.background_replacer import replace_background
from ..services.edge_cost_service import DEFAULT_SENSITIVITY
from ..services.image_service import ImageService
from ..services.mask_service import DEFAULT_BG_COLOR

logger = logging.getLogger(__name__)


def parse_anchor(text: str) -> Tuple[float, float]:
    try:
        x, y = (float(v) for v in text.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"anchor must look like X,Y (got {text!r})")
    return x, y


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="chromacut-trace",
        description="Snap a polygon to image edges and recolour or cut out the background.",
    )
    p.add_argument("image", help="input image path, or a folder to trace with the same anchors")
    p.add_argument("-a", "--anchor", dest="anchors", action="append", type=parse_anchor,
                   required=True, help="anchor point X,Y in image pixels (repeat, in order)")
    p.add_argument("-m", "--mode", choices=["background", "extract"], default="background")
    p.add_argument("-c", "--color", default=DEFAULT_BG_COLOR,
                   help="background colour for --mode background (CSS syntax)")
    p.add_argument("-s", "--sensitivity", type=float, default=DEFAULT_SENSITIVITY)
    p.add_argument("-o", "--output", default=None, help="output PNG path (output folder when IMAGE is a folder)")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def _trace_one(image_service: ImageService, img: Image, args, output_path) -> bool:
    try:
        result = replace_background(
            img,
            args.anchors,
            mode=args.mode,
            color=args.color,
            sensitivity=args.sensitivity,
            output_path=output_path,
        )
    except ValueError as e:
        logger.error(f"Tracing failed for {img.path}: {e}")
        return False

    image_service.save(result)
    print(f"Saved {args.mode} result to {result.path}")
    return True


def _run_folder(image_service: ImageService, folder: Path, args) -> int:
    """Apply the same anchors to every image in `folder` (aligned shots)."""
    out_dir = Path(args.output) if args.output else None
    processed = failed = 0
    for img in image_service.stream_gallery(folder):
        output_path = out_dir / f"{img.path.stem}_{args.mode}.png" if out_dir else None
        processed += 1
        if not _trace_one(image_service, img, args, output_path):
            failed += 1

    if processed == 0:
        logger.error(f"No images found in {folder}")
        return 1
    print(f"Processed {processed} images from {folder} ({failed} failed)")
    return 2 if failed else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # --- Centralized Logging Configuration ---
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )

    image_service = ImageService()
    source = Path(args.image)
    if source.is_dir():
        return _run_folder(image_service, source, args)

    try:
        img = image_service.load(source)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    print(f"Loaded {args.image} ({img.width}x{img.height}), {len(args.anchors)} anchors")
    return 0 if _trace_one(image_service, img, args, args.output) else 2


if __name__ == "__main__":
    sys.exit(main())
