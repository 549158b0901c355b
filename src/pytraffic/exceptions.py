"""Custom exception hierarchy for pytraffic."""

from __future__ import annotations


class TrafficError(Exception):
    """Base exception for all pytraffic errors."""


class TrafficConfigError(TrafficError):
    """Invalid or missing configuration."""


class TrafficTransportError(TrafficError):
    """HTTP-level failure (network, non-2xx, undecodable or invalid JSON body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TrafficQueryError(TrafficError):
    """The remote store answered, but not with the rows we asked for."""

    def __init__(self, message: str, *, endpoint: str = "") -> None:
        self.endpoint = endpoint
        super().__init__(message)


class TrafficAuthenticationError(TrafficError):
    """Dashboard sign-in rejected.

    The message is suitable for showing to the user as-is.
    """


class TrafficInvalidEditError(TrafficError, ValueError):
    """A timing edit fell outside the accepted range or step.

    The previously accepted value is kept.
    """

    def __init__(self, message: str, *, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class TrafficCommitError(TrafficError):
    """Writing a timing configuration record failed."""


class TrafficCommitInProgressError(TrafficCommitError):
    """A commit was requested while another one is still outstanding."""
