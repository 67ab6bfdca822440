"""Exception hierarchy for the botapi client."""

from typing import Any, Dict, Optional


class BotAPIError(Exception):
    """Base class for every error raised by :mod:`botapi`."""


class BuildError(BotAPIError):
    """A request could not be built (missing endpoint or bot token).

    Raised synchronously by :class:`~botapi.request.RequestBuilder`; no
    network call is made.
    """


class APIException(BotAPIError):
    """Non-2xx response from the Bot API.

    Attributes:
        status_code: HTTP status code returned by the API.
        response_body: Parsed JSON response body, when available.
    """

    def __init__(self, status_code: int, response_body: Optional[Dict[str, Any]] = None) -> None:
        """Initialise with the HTTP status code and optional body."""
        self.status_code = status_code
        self.response_body = response_body or {}
        description = self.response_body.get("description", "Unknown error")
        super().__init__(f"API error {status_code}: {description}")
