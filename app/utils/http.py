"""HTTP helpers shared by the outbound API clients."""

from __future__ import annotations

import httpx


class RetryConfig:
    """Bounded attempt count with a linear backoff between attempts."""

    def __init__(self, *, attempts: int = 1, backoff_seconds: float = 0.5) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return self.backoff_seconds * attempt


def error_message(response: httpx.Response) -> str:
    """Extract the human-readable error from a JSON API response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error")
        if message:
            return str(message)
    return response.text or response.reason_phrase


__all__ = ["RetryConfig", "error_message"]
