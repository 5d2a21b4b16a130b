class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class InvalidTimeFormat(AppError):
    """Raised when a wall-clock value is not a 24-hour HH:MM string."""
    def __init__(self, value):
        super().__init__(
            f"Time must be in HH:MM 24-hour format, got {value!r}",
            status_code=422,
            details={"value": value},
        )

class InvalidInterval(AppError):
    """Raised when a session does not end strictly after it starts."""
    def __init__(self, start_time: str, end_time: str, session_id: int | None = None):
        super().__init__(
            f"End time {end_time} must be after start time {start_time}",
            status_code=422,
            details={"session_id": session_id, "start_time": start_time, "end_time": end_time},
        )

class AmbiguousPlacement(AppError):
    """Raised when a session has neither a concrete date nor a usable day of week."""
    def __init__(self, session_id: int | None, reason: str = "no date or day of week"):
        super().__init__(
            f"Session {session_id} cannot be placed: {reason}",
            status_code=422,
            details={"session_id": session_id},
        )

class CommitFailure(AppError):
    """Raised when the external commit of a move is refused or fails."""
    def __init__(self, message: str, conflicts: list | None = None, session_id: int | None = None):
        super().__init__(
            message,
            status_code=409,
            details={"session_id": session_id, "conflicts": conflicts or []},
        )

    @property
    def conflicts(self) -> list:
        return self.details["conflicts"]

class MoveInProgressError(AppError):
    """Raised when a session is picked up while a commit for it is outstanding."""
    def __init__(self, session_id: int):
        super().__init__(
            f"A move for session {session_id} is still being committed",
            status_code=409,
            details={"session_id": session_id},
        )

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
