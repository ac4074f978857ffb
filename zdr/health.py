from __future__ import annotations

import time

import httpx


def check_health(url: str, timeout_s: float = 2.0) -> tuple[bool, str, float | None]:
    """Call a version's health endpoint through the reverse proxy.

    Any 200 answer counts as healthy; the body is not interpreted.
    Returns (is_healthy, message, latency_ms).
    """
    start = time.time()
    try:
        with httpx.Client(timeout=timeout_s, follow_redirects=False) as client:
            resp = client.get(url)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        if resp.status_code != 200:
            return False, f"HTTP {resp.status_code}", latency_ms
        return True, "Healthy", latency_ms
    except (httpx.ConnectError, httpx.TimeoutException):
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


def wait_healthy(url: str, timeout_s: float, interval_s: float = 2.0) -> tuple[bool, str]:
    t0 = time.time()
    msg = "No check performed"
    while True:
        ok, msg, _ = check_health(url)
        if ok:
            return True, msg
        if time.time() - t0 >= timeout_s:
            return False, msg
        time.sleep(interval_s)
