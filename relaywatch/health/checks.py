"""Reference check providers — HTTP(S) and TCP connect.

A provider is any object with ``run() -> CheckResult``. Providers report
unhealthy targets as CRITICAL/WARN results; failures to execute the probe
itself raise CheckExecutionFailed, which the executor turns into a
HEALTH_CHECK_ERROR result.
"""

from __future__ import annotations

import logging
import socket
import time
from typing import Protocol

import httpx

from ..errors import CheckExecutionFailed
from .result import CheckResult, Status

logger = logging.getLogger(__name__)


class CheckProvider(Protocol):
    def run(self) -> CheckResult: ...


class HttpCheck:
    """HTTP(S) check — status code + latency budget."""

    def __init__(
        self,
        url: str,
        method: str = "GET",
        expected_status: int = 200,
        timeout_ms: int = 10_000,
        warn_latency_ms: int = 3_000,
    ) -> None:
        self.url = url
        self.method = method
        self.expected_status = expected_status
        self.timeout_ms = timeout_ms
        self.warn_latency_ms = warn_latency_ms

    def run(self) -> CheckResult:
        t0 = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout_ms / 1000, follow_redirects=True) as client:
                resp = client.request(self.method, self.url)
        except httpx.TimeoutException as e:
            raise CheckExecutionFailed(f"Request timed out ({self.timeout_ms}ms): {e}") from e
        except httpx.HTTPError as e:
            raise CheckExecutionFailed(f"Connection error: {e}") from e
        latency = (time.perf_counter() - t0) * 1000

        if resp.status_code != self.expected_status:
            return CheckResult(
                Status.CRITICAL,
                f"Expected {self.expected_status}, got {resp.status_code}",
            )
        if latency > self.warn_latency_ms:
            return CheckResult(
                Status.WARN,
                f"{resp.status_code} OK but slow ({latency:.0f}ms > {self.warn_latency_ms}ms)",
            )
        return CheckResult(Status.OK, f"{resp.status_code} OK")

    def __repr__(self) -> str:
        return f"HttpCheck({self.method} {self.url})"


class TcpCheck:
    """Raw TCP port connectivity check."""

    def __init__(self, hostname: str, port: int = 443, timeout_ms: int = 5_000) -> None:
        self.hostname = hostname
        self.port = port
        self.timeout_ms = timeout_ms

    def run(self) -> CheckResult:
        try:
            sock = socket.create_connection(
                (self.hostname, self.port), timeout=self.timeout_ms / 1000,
            )
            sock.close()
        except ConnectionRefusedError:
            return CheckResult(Status.CRITICAL, f"Port {self.port} refused connection")
        except socket.gaierror as e:
            raise CheckExecutionFailed(f"Could not resolve {self.hostname}: {e}") from e
        except OSError as e:
            raise CheckExecutionFailed(f"TCP connect failed: {type(e).__name__}: {e}") from e
        return CheckResult(Status.OK, f"Port {self.port} open")

    def __repr__(self) -> str:
        return f"TcpCheck({self.hostname}:{self.port})"


PROVIDER_TYPES = {
    "http": lambda c: HttpCheck(
        c["url"],
        method=c.get("method", "GET"),
        expected_status=int(c.get("expected_status", 200)),
        timeout_ms=int(c.get("timeout_ms", 10_000)),
        warn_latency_ms=int(c.get("warn_latency_ms", 3_000)),
    ),
    "tcp": lambda c: TcpCheck(
        c["hostname"],
        port=int(c.get("port", 443)),
        timeout_ms=int(c.get("timeout_ms", 5_000)),
    ),
}
