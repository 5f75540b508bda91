"""
Rate limiting middleware to prevent overwhelming the server.
"""

import time
import asyncio
from collections import defaultdict, deque
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)

SKIP_PATHS = ("/", "/health", "/docs", "/redoc", "/openapi.json")


class RateLimiter:
    def __init__(self, max_requests_per_minute=600, max_concurrent_per_ip=50, window_seconds=60):
        self.max_requests_per_minute = max_requests_per_minute
        self.max_concurrent_per_ip = max_concurrent_per_ip
        self.window_seconds = window_seconds

        # Track requests per IP per window
        self.request_history = defaultdict(deque)

        # Track concurrent requests per IP
        self.concurrent_requests = defaultdict(int)

        self.lock = asyncio.Lock()

    async def is_allowed(self, client_ip: str) -> tuple[bool, str]:
        """Check if the request is allowed based on rate limits."""
        async with self.lock:
            current_time = time.time()

            # Clean old requests
            window_start = current_time - self.window_seconds
            history = self.request_history[client_ip]
            while history and history[0] < window_start:
                history.popleft()

            if len(history) >= self.max_requests_per_minute:
                return False, f"Rate limit exceeded: {self.max_requests_per_minute} requests per minute"

            if self.concurrent_requests[client_ip] >= self.max_concurrent_per_ip:
                return False, f"Too many concurrent requests: {self.max_concurrent_per_ip} max per IP"

            history.append(current_time)
            self.concurrent_requests[client_ip] += 1
            return True, ""

    async def release_request(self, client_ip: str):
        """Release a concurrent request slot."""
        async with self.lock:
            if self.concurrent_requests[client_ip] > 0:
                self.concurrent_requests[client_ip] -= 1

    async def __call__(self, request: Request, call_next):
        """Use as `app.middleware("http")(limiter)`."""
        client_ip = request.client.host if request.client else "unknown"

        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        allowed, message = await self.is_allowed(client_ip)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {client_ip}: {message}")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too Many Requests",
                    "message": message,
                    "retry_after": self.window_seconds,
                    "status_code": 429
                },
                headers={"Retry-After": str(self.window_seconds)}
            )

        try:
            return await call_next(request)
        finally:
            # Always release the concurrent request slot
            await self.release_request(client_ip)
