"""FastAPI application exposing the selection session over local HTTP."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collection.fetcher import FetchError
from selection import BulkSelectAborted, InvalidTarget, PageSnapshot, SelectionSession

from .auth import APIKeyAuth
from .models import (
    BulkSelectRequest,
    BulkSelectResponse,
    HealthResponse,
    NavigateRequest,
    PageResponse,
    PageSizeRequest,
    RecordRow,
    SelectionResponse,
    ToggleRequest,
)

LOGGER = logging.getLogger("pageselect.api")


@dataclass(slots=True)
class APIServerConfig:
    """Runtime configuration for the FastAPI application."""

    session: SelectionSession
    api_key: Optional[str]
    cors_origins: Sequence[str]
    app_version: str = "dev"
    lan_only: bool = True
    max_page_size: int = 100


_LOCAL_CLIENT_SENTINELS = {
    "127.0.0.1",
    "::1",
    "localhost",
    "testclient",
}


def _normalise_remote_host(host: Optional[str]) -> Optional[str]:
    if host is None:
        return None
    value = host.strip().lower()
    if not value:
        return None
    if value.startswith("::ffff:"):
        value = value.rsplit(":", 1)[-1]
    if value.startswith("[") and value.endswith("]"):
        value = value[1:-1]
    if "%" in value:  # strip IPv6 scope id
        value = value.split("%", 1)[0]
    return value


def _is_loopback_host(host: Optional[str]) -> bool:
    value = _normalise_remote_host(host)
    if value is None:
        return True
    if value in _LOCAL_CLIENT_SENTINELS:
        return True
    return value.startswith("127.")


def page_response(snapshot: PageSnapshot) -> PageResponse:
    checked = set(snapshot.checked_ids)
    page = snapshot.page
    return PageResponse(
        page_index=page.page_index,
        page_size=page.page_size,
        total_records=page.total_records,
        page_count=page.page_count,
        first_row_number=page.first_row_number,
        rows=[
            RecordRow(id=record.id, checked=record.id in checked, fields=dict(record.fields))
            for record in page.records
        ],
        checked_ids=list(snapshot.checked_ids),
        selection_count=snapshot.selection_count,
    )


def create_app(config: APIServerConfig) -> FastAPI:
    """Create a FastAPI application bound to the given configuration."""

    app = FastAPI(
        title="Page Selection Local API",
        version=config.app_version,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    allowed_origins: List[str] = [origin for origin in config.cors_origins if origin]
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    auth_dependency = APIKeyAuth(config.api_key)
    session = config.session
    lan_only = bool(config.lan_only)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response: Optional[Response] = None
        client_host = request.client.host if request.client else None
        try:
            if lan_only and not _is_loopback_host(client_host):
                LOGGER.warning("Rejected non-local HTTP request from %s", client_host or "<unknown>")
                response = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "LAN access disabled"})
            else:
                response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            status_code = response.status_code if response is not None else 500
            LOGGER.info(
                "%s %s -> %s (%.1f ms) ip=%s",
                request.method,
                request.url.path,
                status_code,
                duration_ms,
                client_host or "-",
            )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_request: Request, exc: HTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "invalid parameters", "details": exc.errors()},
        )

    @app.exception_handler(BulkSelectAborted)
    async def bulk_aborted_handler(_request: Request, exc: BulkSelectAborted):
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "error": str(exc),
                "added": exc.added,
                "pages_scanned": exc.pages_scanned,
                "selection_count": session.selection_count,
            },
        )

    @app.exception_handler(FetchError)
    async def fetch_error_handler(_request: Request, exc: FetchError):
        content = {"error": str(exc)}
        if exc.status_code is not None:
            content["upstream_status"] = exc.status_code
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=content)

    @app.exception_handler(InvalidTarget)
    async def invalid_target_handler(_request: Request, exc: InvalidTarget):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.get("/v1/health", response_model=HealthResponse)
    def health_check(_: str = Depends(auth_dependency)) -> HealthResponse:
        now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return HealthResponse(
            ok=True,
            version=config.app_version,
            time_utc=now,
            page_loaded=bool(session.page.records) or session.page.total_records > 0,
            selection_count=session.selection_count,
        )

    @app.get("/v1/page", response_model=PageResponse)
    def current_page(_: str = Depends(auth_dependency)) -> PageResponse:
        return page_response(session.snapshot())

    @app.post("/v1/page/navigate", response_model=PageResponse)
    def navigate(payload: NavigateRequest, _: str = Depends(auth_dependency)) -> PageResponse:
        return page_response(session.navigate_to_page(payload.page_index))

    @app.post("/v1/page/size", response_model=PageResponse)
    def change_page_size(payload: PageSizeRequest, _: str = Depends(auth_dependency)) -> PageResponse:
        if payload.page_size > config.max_page_size:
            raise HTTPException(
                status_code=400,
                detail=f"page_size must be <= {config.max_page_size}",
            )
        return page_response(session.change_page_size(payload.page_size))

    @app.post("/v1/selection/toggle", response_model=PageResponse)
    def toggle(payload: ToggleRequest, _: str = Depends(auth_dependency)) -> PageResponse:
        try:
            snapshot = session.apply_user_toggle_ids(payload.checked_ids)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return page_response(snapshot)

    @app.post("/v1/selection/bulk", response_model=BulkSelectResponse)
    def bulk_select(payload: BulkSelectRequest, _: str = Depends(auth_dependency)) -> BulkSelectResponse:
        result = session.bulk_select(payload.target)
        snapshot = session.snapshot()
        return BulkSelectResponse(
            requested=result.requested,
            added=result.added,
            pages_scanned=result.pages_scanned,
            records_scanned=result.records_scanned,
            exhausted=result.exhausted,
            total_records=result.total_records,
            selection_count=snapshot.selection_count,
            page=page_response(snapshot),
        )

    @app.post("/v1/selection/reset", response_model=PageResponse)
    def reset(_: str = Depends(auth_dependency)) -> PageResponse:
        return page_response(session.reset())

    @app.get("/v1/selection", response_model=SelectionResponse)
    def selection(_: str = Depends(auth_dependency)) -> SelectionResponse:
        records = session.selected_records()
        return SelectionResponse(count=len(records), records=[record.as_dict() for record in records])

    return app


__all__ = ["APIServerConfig", "create_app", "page_response"]
