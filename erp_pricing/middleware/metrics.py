import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def new_metrics() -> dict:
    return {"requests": 0, "total_response_ms": 0.0}


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Counts requests and total response time on ``app.state.metrics``.

    app.state is not touched in __init__; the container is created lazily
    in case the startup hook has not run (e.g. under some test clients).
    """

    async def dispatch(self, request: Request, call_next):
        metrics = getattr(request.app.state, "metrics", None)
        if metrics is None:
            metrics = request.app.state.metrics = new_metrics()

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        metrics["requests"] = metrics.get("requests", 0) + 1
        metrics["total_response_ms"] = metrics.get("total_response_ms", 0.0) + elapsed_ms

        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        return response
