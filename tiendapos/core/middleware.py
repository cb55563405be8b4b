# tiendapos/core/middleware.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import time
import logging

logger = logging.getLogger("tiendapos.requests")

def setup_middleware(app: FastAPI):
    """CORS y log de tiempos por request"""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - start_time
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {elapsed:.4f}s"
        )
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"

        return response
