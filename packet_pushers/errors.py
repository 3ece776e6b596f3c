from __future__ import annotations


class GameError(Exception):
    """Base for every error the engine and leaderboard report to callers."""


class ValidationRejected(GameError, ValueError):
    """A player action was not admissible. The message is safe to show verbatim."""


class IntegrityRejected(GameError):
    """A score submission failed the anti-cheat gate.

    `reason` is for server logs only; clients get a generic failure.
    """

    def __init__(self, reason: str) -> None:
        super().__init__("Score validation failed")
        self.reason = reason


class RateLimited(GameError):
    def __init__(self, message: str, *, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NotFound(GameError):
    pass


class SessionBusy(GameError):
    """Another request holds the session, or the stored version moved underneath us."""


class StorageFailure(GameError):
    """The persistence layer failed. Never expose the underlying message to clients."""
