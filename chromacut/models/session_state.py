from enum import Enum


class SessionState(str, Enum):
    EMPTY = "empty"
    BUILDING = "building"
    CLOSED = "closed"


class SessionStateError(RuntimeError):
    """
    Raised when a boundary session operation is issued in a state that
    does not allow it (e.g. adding an anchor after the path was closed).
    """

    def __init__(self, operation: str, state: SessionState):
        super().__init__(f"Cannot {operation} while session is {state.value}")
        self.operation = operation
        self.state = state
