from __future__ import annotations
import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence
from dotenv import load_dotenv

from ..models.point import Point
from .boundary_session import BoundarySession, PreviewRequest

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

PREVIEW_THROTTLE_MS = float(os.getenv("PREVIEW_THROTTLE_MS", "16"))


class PreviewScheduler:
    """
    Runs live previews off the caller's thread.

    • Cursor moves closer together than the throttle interval are dropped.
    • Requests that went stale while queued are skipped without searching.
    • Finished results go through the session's sequence check, so only the
      newest preview is ever stored.
    """

    def __init__(
        self,
        session: BoundarySession,
        throttle_ms: float = PREVIEW_THROTTLE_MS,
        *,
        executor: ThreadPoolExecutor | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session
        self.throttle_s = throttle_ms / 1000.0
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="chromacut-preview"
        )
        self._owns_executor = executor is None
        self._clock = clock
        self._last_submit: float | None = None
        self._lock = threading.Lock()

    def submit(self, cursor: Sequence[float]) -> Optional[Future]:
        """
        Queue a preview towards `cursor`. Returns None when throttled; the
        future resolves to the stored path, or None if it was superseded.
        """
        now = self._clock()
        with self._lock:
            if self._last_submit is not None and now - self._last_submit < self.throttle_s:
                return None
            self._last_submit = now

        request = self.session.begin_preview(cursor)
        return self._executor.submit(self._run, request)

    def _run(self, request: PreviewRequest) -> Optional[List[Point]]:
        if not self.session.is_current(request):
            logger.debug(f"Preview #{request.seq} superseded before it ran")
            return None
        path = request.compute()
        if self.session.apply_preview(request, path):
            return path
        return None

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> PreviewScheduler:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
