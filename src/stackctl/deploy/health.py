"""Health probes."""

from typing import Any

import httpx


def check_http(url: str, timeout: float = 10.0) -> dict[str, Any]:
    """Perform an HTTP health check.

    Any status below 400 counts as healthy, matching ``curl -f``.
    """
    try:
        response = httpx.get(url, timeout=timeout, follow_redirects=True)
        healthy = 200 <= response.status_code < 400

        return {
            "healthy": healthy,
            "message": f"HTTP {response.status_code}",
            "details": {
                "url": url,
                "status_code": response.status_code,
                "response_time_ms": int(response.elapsed.total_seconds() * 1000),
            },
        }
    except httpx.RequestError as e:
        return {
            "healthy": False,
            "message": str(e) or type(e).__name__,
            "details": {"url": url, "error": str(e)},
        }
