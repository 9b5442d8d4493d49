"""Domain concept for mapping watcher and upstream exceptions to user-facing reasons."""
import asyncio
from dataclasses import dataclass

import httpx

from kalshi_watch.providers.core.exceptions import WatchError


@dataclass(frozen=True)
class ErrorMapper:
    """Maps Kalshi/backend exceptions to short user-facing reasons.

    The reasons end up in the notification a user receives when a stop-loss
    could not be executed.
    """

    api_name: str = "Kalshi API"

    def describe(self, exc: Exception) -> str:
        """Return a short, user-facing reason for an exception.

        Args:
            exc: The exception raised by the client, signer or stream.

        Returns:
            A one-line reason such as "Kalshi API error 400: insufficient balance".
        """
        if isinstance(exc, WatchError):
            return exc.reason
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            message = _response_message(exc.response)
            if message:
                return f"{self.api_name} error {status}: {message}"
            return f"{self.api_name} error {status}"
        if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
            return f"Request to {self.api_name} timed out"
        if isinstance(exc, httpx.RequestError):
            return f"Could not reach {self.api_name}: {exc}"
        return str(exc) or type(exc).__name__


def _response_message(response: httpx.Response) -> str:
    """Pull the error message out of a Kalshi error body, falling back to raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or "")
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return ""
