"""GitHub API errors."""

from __future__ import annotations


class GitHubAPIError(RuntimeError):
    """Raised when GitHub returns an error response or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, path: str) -> GitHubAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"GitHub HTTP {status_code} for {path}", status_code=status_code)

    @classmethod
    def unreachable(cls, path: str, detail: object) -> GitHubAPIError:
        """Return an error for transport failures."""
        return cls(f"GitHub request {path} failed: {detail}")


class GitHubRateLimitError(GitHubAPIError):
    """Raised when GitHub rejects a request because a rate limit is exhausted."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reset_at: int | None = None,
    ) -> None:
        """Record the epoch second at which the limit resets, when known."""
        super().__init__(message, status_code=status_code)
        self.reset_at = reset_at

    @classmethod
    def rate_limited(
        cls, status_code: int, path: str, reset_at: int | None
    ) -> GitHubRateLimitError:
        """Return an error for a rate-limited request."""
        suffix = f" (resets at {reset_at})" if reset_at is not None else ""
        return cls(
            f"GitHub rate limit exceeded for {path}{suffix}",
            status_code=status_code,
            reset_at=reset_at,
        )


class GitHubResponseShapeError(RuntimeError):
    """Raised when GitHub responses are missing expected fields."""

    @classmethod
    def unexpected(cls, path: str, expected: str) -> GitHubResponseShapeError:
        """Return an error for a payload of the wrong JSON kind."""
        return cls(f"GitHub response for {path} is not {expected}")
