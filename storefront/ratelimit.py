from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from fastapi import Request


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining_attempts: int


class RateLimiter(Protocol):
    def check_limit(self, identifier: str, max_attempts: int, window_ms: int) -> RateLimitDecision:
        ...


@dataclass
class _Window:
    count: int
    window_start: float


class InMemoryRateLimiter:
    """Fixed-window counter per identifier, local to this process.

    Not shared between workers or instances. Concurrent requests for the same
    identifier may lose an increment.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._windows: Dict[str, _Window] = {}

    def check_limit(self, identifier: str, max_attempts: int = 10, window_ms: int = 60000) -> RateLimitDecision:
        now_ms = self._clock() * 1000.0
        window = self._windows.get(identifier)

        if window is None or now_ms - window.window_start > window_ms:
            self._windows[identifier] = _Window(count=1, window_start=now_ms)
            return RateLimitDecision(True, max_attempts - 1)

        if window.count >= max_attempts:
            return RateLimitDecision(False, 0)

        window.count += 1
        return RateLimitDecision(True, max_attempts - window.count)

    def reset(self) -> None:
        self._windows.clear()


def client_identifier(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
