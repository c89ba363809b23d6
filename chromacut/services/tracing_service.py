from __future__ import annotations
import logging
import uuid

from ..models.image import Image
from ..models.tracing_session import TracingSession
from ..repositories.session_repository import SessionRepository
from .boundary_session import BoundarySession
from .edge_cost_service import DEFAULT_SENSITIVITY, EdgeCostService
from .path_finding_service import PathFindingService

logger = logging.getLogger(__name__)


class TracingService:
    """
    Business logic for per-image tracing sessions.
    Owns cost field (re)computation; delegates storage to SessionRepository.
    """

    def __init__(
        self,
        repository: SessionRepository | None = None,
        edge_cost_service: EdgeCostService | None = None,
        path_finder: PathFindingService | None = None,
    ) -> None:
        self.repository = repository or SessionRepository()
        self.edge_cost_service = edge_cost_service or EdgeCostService()
        self.path_finder = path_finder or PathFindingService()

    def open_session(self, img: Image, sensitivity: float = DEFAULT_SENSITIVITY) -> TracingSession:
        """A new image always gets a fresh session (and a fresh anchor counter)."""
        gradient = self.edge_cost_service.compute_gradient(img.pixels)
        cost_map = self.edge_cost_service.gradient_to_cost(gradient, sensitivity)
        session = TracingSession(
            session_id=uuid.uuid4().hex,
            image=img,
            gradient=gradient,
            sensitivity=float(sensitivity),
            boundary=BoundarySession(cost_map, path_finder=self.path_finder),
        )
        self.repository.add(session)
        logger.info(f"Opened session {session.session_id} for {img.width}x{img.height} image")
        return session

    def get_session(self, session_id: str) -> TracingSession:
        session = self.repository.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return session

    def set_sensitivity(self, session: TracingSession, sensitivity: float) -> None:
        """Re-derive the cost field from the cached gradient and swap it in."""
        cost_map = self.edge_cost_service.gradient_to_cost(session.gradient, sensitivity)
        session.boundary.set_cost_map(cost_map)
        session.sensitivity = float(sensitivity)
        logger.info(f"Session {session.session_id}: sensitivity → {session.sensitivity}")

    def close_session(self, session_id: str) -> bool:
        return self.repository.remove(session_id)

    def active_sessions(self) -> int:
        return len(self.repository)
