"""
Error taxonomy for memory operations.

Every failure surfaced to callers is one of these, so a handler only has
to know four kinds of problems: bad input, missing data, a remote service
that failed, and a collaborator that was never configured.
"""


class MemoryCacheError(Exception):
    """Base class for all memory cache errors."""
    pass


class ValidationError(MemoryCacheError, ValueError):
    """Malformed or missing input. Raised before any adapter is contacted."""
    pass


class NotFoundError(MemoryCacheError):
    """A requested session or memory does not exist."""
    pass


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"session not found: {session_id}")


class MemoryNotFoundError(NotFoundError):
    def __init__(self, memory_id: str, user_id: str):
        self.memory_id = memory_id
        self.user_id = user_id
        super().__init__(
            f"memory {memory_id} not found or does not belong to user {user_id}"
        )


class UpstreamError(MemoryCacheError):
    """
    A remote service call failed.

    Carries which adapter and which operation failed so that the message
    is useful without knowing the multi-adapter internals.
    """

    def __init__(self, adapter: str, operation: str, detail: str):
        self.adapter = adapter
        self.operation = operation
        self.detail = detail
        super().__init__(f"{adapter} {operation} failed: {detail}")


class ConfigurationError(MemoryCacheError):
    """A required collaborator or setting is missing."""
    pass
