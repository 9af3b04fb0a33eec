"""
Error taxonomy for the Linear integration.
"""

from __future__ import annotations

from typing import Any


class LinearAPIError(Exception):
    def __init__(
        self, message: str, status: int | None = None, response: Any = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response


class LinearAuthenticationError(LinearAPIError):
    def __init__(self, message: str, response: Any = None) -> None:
        super().__init__(message, 401, response)


class LinearConfigurationError(LinearAuthenticationError):
    """Required credential missing; raised before anything is constructed."""


class LinearRateLimitError(LinearAPIError):
    def __init__(self, message: str, reset_time: int | None = None, response: Any = None) -> None:
        super().__init__(message, 429, response)
        self.reset_time = reset_time
