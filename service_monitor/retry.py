from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

import httpx


class RetryError(Exception):
    """All attempts of a request failed.

    ``response`` holds the last non-2xx response when the final attempt got
    one, ``error`` the last transport exception otherwise.
    """

    def __init__(self, attempts: int, *, error: Exception | None = None, response: httpx.Response | None = None):
        self.attempts = attempts
        self.error = error
        self.response = response
        super().__init__(self.describe())

    def describe(self) -> str:
        if self.response is not None:
            return f"status {self.response.status_code} {self.response.reason_phrase}".strip()
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return "no attempts made"


def is_success(resp: httpx.Response) -> bool:
    return 200 <= resp.status_code < 300


def _delay_for(attempt: int, backoff_seconds: float) -> float:
    if backoff_seconds <= 0:
        return 0.0
    return backoff_seconds * attempt + random.uniform(0, backoff_seconds)


async def retry_request(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    times: int,
    backoff_seconds: float = 0.0,
) -> httpx.Response:
    """Call ``send`` up to ``times`` times and return the first 2xx response.

    Transport errors and non-2xx responses both count as failed attempts.
    Attempts are back-to-back unless ``backoff_seconds`` is set.
    """
    times = max(1, int(times))
    last_error: Exception | None = None
    last_response: httpx.Response | None = None
    for attempt in range(1, times + 1):
        try:
            resp = await send()
        except httpx.HTTPError as e:
            last_error, last_response = e, None
        else:
            if is_success(resp):
                return resp
            last_error, last_response = None, resp
        if attempt < times:
            delay = _delay_for(attempt, backoff_seconds)
            if delay:
                await asyncio.sleep(delay)
    raise RetryError(times, error=last_error, response=last_response)
