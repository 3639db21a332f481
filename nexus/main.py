from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from nexus.api.exception_handlers import error_body, setup_exception_handlers
from nexus.api.routers import assets, organizations, upload, users, work_orders
from nexus.config import get_settings
from nexus.domain.models import now_utc
from nexus.infra.db import check_db_ready
from nexus.infra.logging import RequestIdMiddleware, setup_logging

settings = get_settings()
setup_logging(settings)

app = FastAPI(
    title="nexus",
    description="Maintenance management API for organizations, assets and work orders.",
    version="1.0.0",
)

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_exception_handlers(app, settings)


@app.middleware("http")
async def limit_json_body(request: Request, call_next: RequestResponseEndpoint) -> Response:
    if request.headers.get("content-type", "").startswith("application/json"):
        content_length = request.headers.get("content-length", "")
        if content_length.isdigit():
            size = int(content_length)
        else:
            # Chunked bodies carry no length; Starlette caches the body for the route.
            size = len(await request.body())
        if size > settings.max_upload_size_bytes:
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content=error_body("Request body too large"),
            )
    return await call_next(request)


app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(assets.router, prefix="/api/assets", tags=["assets"])
app.include_router(work_orders.router, prefix="/api/work-orders", tags=["work-orders"])
app.include_router(upload.router, prefix="/api/upload", tags=["upload"])


@app.get("/api/health")
def health() -> JSONResponse:
    timestamp = now_utc().isoformat()
    if not check_db_ready():
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "status": "ERROR",
                "message": "Database connection failed",
                "database": "Disconnected",
                "timestamp": timestamp,
            },
        )
    return JSONResponse(
        content={
            "status": "OK",
            "message": "Nexus API is running",
            "database": "Connected",
            "timestamp": timestamp,
        }
    )
