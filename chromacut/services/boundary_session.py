"""
Boundary Session
Accumulates anchors for one open image and stitches the edge-snapped
segments between them into a single committed polyline.

State machine:  EMPTY → BUILDING → CLOSED, reset() from anywhere → EMPTY.
"""
from __future__ import annotations
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np
from dotenv import load_dotenv

from ..models.point import Anchor, Point
from ..models.session_state import SessionState, SessionStateError
from .path_finding_service import PathFindingService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

SNAP_RADIUS_SCREEN_PX = float(os.getenv("SNAP_RADIUS_SCREEN_PX", "15"))
MIN_ANCHORS_TO_CLOSE = 3


@dataclass(frozen=True, eq=False)
class PreviewRequest:
    """
    Snapshot of everything a preview search needs, taken under the session
    lock. compute() touches no session state, so it can run on a worker.
    """
    seq: int
    epoch: int
    start: Point
    cursor: Point
    cost_map: np.ndarray = field(repr=False)
    path_finder: PathFindingService = field(repr=False)

    def compute(self) -> List[Point]:
        return self.path_finder.find_path(self.start, self.cursor, self.cost_map)


class BoundarySession:
    """
    One tracing session per loaded image.

    All public operations are serialized by a re-entrant lock. Previews are
    tagged with a sequence number and the commit epoch at issue time; a
    result is only applied if nothing newer was requested and nothing was
    committed (anchor, close, undo, reset, cost field swap) in between.
    """

    def __init__(
        self,
        cost_map: np.ndarray,
        *,
        path_finder: PathFindingService | None = None,
        segment_cache: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self._cost_map = cost_map
        self._finder = path_finder or PathFindingService()
        self._use_cache = segment_cache
        self._segments: Dict[Tuple[Point, Point, int], List[Point]] = {}

        self._field_version = 0
        self._epoch = 0
        self._preview_seq = 0
        self._next_anchor_id = 0

        self._anchors: List[Anchor] = []
        self._committed: List[Point] = []
        self._preview: List[Point] = []
        self._closed = False

    # ---------- read-only views ----------
    @property
    def width(self) -> int:
        return int(self._cost_map.shape[1])

    @property
    def height(self) -> int:
        return int(self._cost_map.shape[0])

    @property
    def cost_map(self) -> np.ndarray:
        return self._cost_map

    @property
    def field_version(self) -> int:
        return self._field_version

    @property
    def state(self) -> SessionState:
        with self._lock:
            if self._closed:
                return SessionState.CLOSED
            if self._anchors:
                return SessionState.BUILDING
            return SessionState.EMPTY

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def anchors(self) -> List[Anchor]:
        with self._lock:
            return list(self._anchors)

    @property
    def committed_path(self) -> List[Point]:
        with self._lock:
            return list(self._committed)

    @property
    def preview_path(self) -> List[Point]:
        with self._lock:
            return list(self._preview)

    # ---------- private helpers ----------
    def _quantize(self, point: Sequence[float]) -> Point:
        return self._finder.clamp_point(point, self.width, self.height)

    def _clamp(self, point: Sequence[float]) -> Point:
        x = self._finder.clamp_coordinate(point[0], self.width - 1)
        y = self._finder.clamp_coordinate(point[1], self.height - 1)
        return Point(x, y)

    def _segment(self, a: Point, b: Point) -> List[Point]:
        key = (a, b, self._field_version)
        if self._use_cache and key in self._segments:
            return self._segments[key]
        path = self._finder.find_path(a, b, self._cost_map)
        if self._use_cache:
            self._segments[key] = path
        return path

    def _rebuild_committed(self) -> List[Point]:
        if not self._anchors:
            return []
        path = [self._anchors[0].point]
        for prev, nxt in zip(self._anchors, self._anchors[1:]):
            path.extend(self._segment(prev.point, nxt.point)[1:])
        return path

    def _prune_segments(self) -> None:
        """Keep only segments between anchors that are still consecutive."""
        live = {(a.point, b.point) for a, b in zip(self._anchors, self._anchors[1:])}
        self._segments = {
            key: path for key, path in self._segments.items() if key[:2] in live
        }

    def _invalidate_preview(self) -> None:
        self._preview = []
        self._epoch += 1

    # ---------- state machine ----------
    def add_anchor(self, point: Sequence[float]) -> Anchor:
        with self._lock:
            if self._closed:
                raise SessionStateError("add an anchor", SessionState.CLOSED)

            point = self._quantize(point)
            anchor = Anchor(point=point, id=self._next_anchor_id)
            self._next_anchor_id += 1

            if self._anchors:
                segment = self._segment(self._anchors[-1].point, point)
                self._committed.extend(segment[1:])
            else:
                self._committed = [point]

            self._anchors.append(anchor)
            self._invalidate_preview()
            logger.debug(f"Anchor #{anchor.id} at {point}; polyline has {len(self._committed)} points")
            return anchor

    def preview_to(self, cursor: Sequence[float]) -> List[Point]:
        """Synchronous preview: search, store and return the candidate path."""
        with self._lock:
            request = self.begin_preview(cursor)
            path = request.compute()
            self.apply_preview(request, path)
            return list(path)

    def begin_preview(self, cursor: Sequence[float]) -> PreviewRequest:
        with self._lock:
            state = self.state
            if state is not SessionState.BUILDING:
                raise SessionStateError("preview", state)
            self._preview_seq += 1
            return PreviewRequest(
                seq=self._preview_seq,
                epoch=self._epoch,
                start=self._anchors[-1].point,
                cursor=self._clamp(cursor),
                cost_map=self._cost_map,
                path_finder=self._finder,
            )

    def is_current(self, request: PreviewRequest) -> bool:
        with self._lock:
            return (
                not self._closed
                and request.seq == self._preview_seq
                and request.epoch == self._epoch
            )

    def apply_preview(self, request: PreviewRequest, path: Sequence[Point]) -> bool:
        """Store a finished preview unless a newer request or a commit superseded it."""
        with self._lock:
            if not self.is_current(request):
                logger.debug(f"Discarding stale preview #{request.seq}")
                return False
            self._preview = list(path)
            return True

    def try_close(self, cursor: Sequence[float], snap_radius: float) -> Optional[List[Point]]:
        """
        Close the loop if the cursor is within snap_radius of the first anchor.
        Returns the finalized polyline, or None when not ready / not close enough.
        """
        with self._lock:
            if self._closed:
                raise SessionStateError("close", SessionState.CLOSED)
            if len(self._anchors) < MIN_ANCHORS_TO_CLOSE:
                return None

            first = self._anchors[0].point
            if self._clamp(cursor).distance_to(first) > snap_radius:
                return None

            closing = self._segment(self._anchors[-1].point, first)
            self._committed.extend(closing[1:])
            self._closed = True
            self._invalidate_preview()
            logger.info(
                f"Boundary closed: {len(self._anchors)} anchors, {len(self._committed)} points"
            )
            return list(self._committed)

    def undo(self) -> None:
        with self._lock:
            state = self.state
            if state is not SessionState.BUILDING:
                raise SessionStateError("undo", state)

            self._anchors.pop()
            # recompute, don't patch: segments depend on the current cost field
            self._committed = self._rebuild_committed()
            self._prune_segments()
            self._invalidate_preview()

    def reset(self) -> None:
        with self._lock:
            self._anchors = []
            self._committed = []
            self._closed = False
            self._next_anchor_id = 0
            self._segments.clear()
            self._invalidate_preview()

    def set_cost_map(self, cost_map: np.ndarray) -> None:
        """
        Swap in a recomputed cost field (e.g. after a sensitivity change).
        The committed polyline is kept; in-flight previews become stale.
        """
        with self._lock:
            if cost_map.shape[:2] != self._cost_map.shape[:2]:
                raise ValueError(
                    f"Cost field shape {cost_map.shape[:2]} does not match "
                    f"session image {self._cost_map.shape[:2]}"
                )
            self._cost_map = cost_map
            self._field_version += 1
            self._segments.clear()
            self._invalidate_preview()

    # ---------- proximity ----------
    def is_near_start(self, cursor: Sequence[float], threshold: float) -> bool:
        with self._lock:
            if len(self._anchors) < MIN_ANCHORS_TO_CLOSE:
                return False
            return self._clamp(cursor).distance_to(self._anchors[0].point) <= threshold

    @staticmethod
    def snap_radius_for_scale(scale: float, screen_radius: float = SNAP_RADIUS_SCREEN_PX) -> float:
        """Constant on-screen radius expressed in image pixels at the given zoom."""
        if scale <= 0:
            raise ValueError(f"Display scale must be positive, got {scale}")
        return screen_radius / scale
