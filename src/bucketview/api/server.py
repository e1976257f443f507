"""HTTP server: app factory wiring the auth gateway and bucket services."""

from __future__ import annotations

import logging
import time
from typing import Callable

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bucketview import __version__
from bucketview.api.middleware import CorrelationIdMiddleware, CorsMiddleware
from bucketview.api.routers import auth_routes, folder_routes, health, metadata_routes, upload_routes
from bucketview.auth import AuthGateway
from bucketview.config import Config, load_config, validate_for_serving
from bucketview.errors import BucketViewError, ErrorCode, ErrorResponse
from bucketview.identity import GoogleIdentityProvider, IdentityProvider
from bucketview.logging_setup import setup_logging
from bucketview.metadata import MetadataService
from bucketview.namespace import NamespaceManager
from bucketview.session.store import KVStore, create_kv_stores
from bucketview.storage import ObjectNotFoundError, ObjectStorageError, ObjectStore, create_object_store
from bucketview.upload import UploadService

logger = logging.getLogger("bucketview")


def _error_response(exc: BucketViewError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse.from_error(exc).model_dump())


def create_app(
    config: Config | None = None,
    *,
    store: ObjectStore | None = None,
    states: KVStore | None = None,
    sessions: KVStore | None = None,
    provider: IdentityProvider | None = None,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create the FastAPI app.

    Any collaborator left as None is built from ``config``; tests pass
    in-memory stores and a fake identity provider instead.
    """
    cfg: Config = config if config is not None else load_config()

    if store is None:
        store = create_object_store(cfg.storage)
    if states is None or sessions is None:
        built_states, built_sessions = create_kv_stores(cfg.session.backend, cfg.session.redis_url)
        states = states or built_states
        sessions = sessions or built_sessions
    if provider is None:
        provider = GoogleIdentityProvider(cfg.oauth)

    app = FastAPI(title="bucketview", description="Folder browser for object storage", version=__version__)
    app.state.config = cfg
    app.state.gateway = AuthGateway(cfg, states, sessions, provider, clock=clock)
    app.state.namespace = NamespaceManager(
        store, separator=cfg.namespace.separator, max_concurrency=cfg.namespace.max_concurrency
    )
    app.state.metadata = MetadataService(
        store, separator=cfg.namespace.separator, max_concurrency=cfg.namespace.max_concurrency
    )
    app.state.uploads = UploadService(store, cfg.upload, cfg.storage, separator=cfg.namespace.separator)

    # Starlette middleware order: last added = outermost (first to run)
    app.add_middleware(CorsMiddleware, allowed_origins=cfg.cors.allowed_origins)
    app.add_middleware(CorrelationIdMiddleware)

    # --- Exception handlers ---

    @app.exception_handler(BucketViewError)
    async def bucketview_error_handler(request: Request, exc: BucketViewError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code.value, exc.message)
        return _error_response(exc)

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
        return _error_response(BucketViewError(
            ErrorCode.OBJECT_NOT_FOUND, "Object not found", details={"key": exc.key} if exc.key else None
        ))

    @app.exception_handler(ObjectStorageError)
    async def storage_error_handler(request: Request, exc: ObjectStorageError) -> JSONResponse:
        logger.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(BucketViewError(ErrorCode.STORE_ERROR, f"Error: {exc.message}"))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = BucketViewError(
            ErrorCode.VALIDATION_ERROR,
            "Request validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
        return JSONResponse(
            status_code=err.status_code,
            content=ErrorResponse.from_error(err).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _error_response(BucketViewError(ErrorCode.ENDPOINT_NOT_FOUND, "Endpoint not found"))
        err = BucketViewError(ErrorCode.INVALID_REQUEST, str(exc.detail), status_code=exc.status_code)
        return _error_response(err)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(status_code=500, content=ErrorResponse.internal(f"Error: {exc}").model_dump())

    app.include_router(health.router)
    app.include_router(auth_routes.router)
    app.include_router(folder_routes.router)
    app.include_router(metadata_routes.router)
    app.include_router(upload_routes.router)

    @app.on_event("shutdown")
    async def _close_resources() -> None:
        await provider.aclose()
        await store.close()
        await states.close()
        if sessions is not states:
            await sessions.close()

    return app


def run_server(config: Config | None = None) -> None:
    """Validate config, build the app and serve it with uvicorn."""
    if config is None:
        config = load_config()
    setup_logging(config)
    validate_for_serving(config)
    app = create_app(config)
    logger.info(
        "bucketview serving on %s:%d (storage=%s, sessions=%s)",
        config.serve.host, config.serve.port, config.storage.backend, config.session.backend,
    )
    uvicorn.run(app, host=config.serve.host, port=config.serve.port)
