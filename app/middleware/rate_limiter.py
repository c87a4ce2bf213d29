from fastapi import Request
from fastapi.responses import PlainTextResponse
import time
from collections import defaultdict
import asyncio
from typing import Callable, Dict
import logging

RATE_LIMITED_MESSAGE = "Too many requests, please try again later."


class RateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 120,
        path: str = "/api/process-image",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.path = path
        self.clock = clock

        self.requests: Dict[str, list] = defaultdict(list)
        self.lock = asyncio.Lock()
        self.last_sweep = clock()

        logging.info(f"Rate limiter initialized - {self.path}: {self.max_requests} per {self.window_seconds}s")

    def applies_to(self, request: Request) -> bool:
        return request.url.path.rstrip("/") == self.path

    def _sweep(self, current_time: float):
        """Drop addresses whose requests have all left the window."""
        idle = [
            client_ip for client_ip, times in self.requests.items()
            if not times or current_time - times[-1] >= self.window_seconds
        ]
        for client_ip in idle:
            del self.requests[client_ip]
        self.last_sweep = current_time
        if idle:
            logging.info(f"Rate limiter dropped {len(idle)} idle addresses, tracking {len(self.requests)}")

    async def check_rate_limit(self, client_ip: str) -> bool:
        current_time = self.clock()

        async with self.lock:
            if current_time - self.last_sweep >= self.window_seconds:
                self._sweep(current_time)

            # Clean old requests
            self.requests[client_ip] = [
                req_time for req_time in self.requests[client_ip]
                if current_time - req_time < self.window_seconds
            ]

            if len(self.requests[client_ip]) >= self.max_requests:
                logging.warning(f"Rate limit exceeded for {self.path} from {client_ip}: {len(self.requests[client_ip])}/{self.max_requests}")
                return False

            self.requests[client_ip].append(current_time)
            return True


async def rate_limit_middleware(request: Request, call_next):
    rate_limiter: RateLimiter = request.app.state.rate_limiter
    if rate_limiter.applies_to(request):
        client_ip = request.client.host if request.client else "unknown"
        if not await rate_limiter.check_rate_limit(client_ip):
            return PlainTextResponse(RATE_LIMITED_MESSAGE, status_code=429)

    return await call_next(request)
