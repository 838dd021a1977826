"""FastAPI allocation server.

Exposes:
- Resource listing and lifecycle (create, resize, delete)
- The caller's allocations (list, set, release)
- Health and metrics

Handlers hold no accounting logic: they map the caller identity and the
payload onto the core services and render the core's typed errors.
Identity comes from a header set by the authenticating proxy in front of
this service.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse, PlainTextResponse

from alloctrack import __version__
from alloctrack.config import get_settings
from alloctrack.core.errors import AllocTrackError, InvalidInputError
from alloctrack.core.records import AllocationStatus
from alloctrack.core.repository import Storage
from alloctrack.db import close_db, init_db
from alloctrack.logging import configure_logging, get_logger
from alloctrack.metrics import metrics
from alloctrack.middleware import RequestTracingMiddleware
from alloctrack.schemas import (
    AllocationChange,
    AllocationListResponse,
    AllocationView,
    AllocationWrite,
    MessageResponse,
    ResourceListResponse,
    ResourceView,
    ResourceWrite,
)
from alloctrack.services import Services, build_services, build_sql_services

logger = get_logger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_user(request: Request) -> str:
    """Caller identity from the configured header; 401 when missing."""
    user_id = request.headers.get(get_settings().user_header, "").strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id


def create_app(storage: Storage | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        storage: Storage to serve from. Defaults to the configured database,
            whose tables are created on startup.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(
            json_format=settings.log_json and not settings.debug,
            level="DEBUG" if settings.debug else settings.log_level,
        )
        logger.info(
            "server_starting",
            version=__version__,
            host=settings.host,
            port=settings.port,
            debug=settings.debug,
        )
        if storage is None:
            logger.info("database_init", database_url=settings.database_url)
            await init_db()
            app.state.services = build_sql_services()
            logger.info("database_ready")
        else:
            app.state.services = build_services(storage)
        yield
        if storage is None:
            await close_db()
        logger.info("server_shutdown")

    app = FastAPI(
        title="alloctrack",
        description="Resource allocation tracker",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.add_middleware(RequestTracingMiddleware, user_header=settings.user_header)

    @app.exception_handler(AllocTrackError)
    async def handle_core_error(request: Request, exc: AllocTrackError) -> JSONResponse:
        logger.info(
            "request_rejected",
            code=exc.code,
            status_code=exc.http_status,
            details=exc.details,
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def handle_malformed_body(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        error = exc.errors()[0]
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        invalid = InvalidInputError(f"Malformed request: {error['msg']}", field)
        return JSONResponse(status_code=invalid.http_status, content=invalid.to_response())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics", include_in_schema=False)
    async def get_metrics() -> PlainTextResponse:
        """Prometheus-formatted metrics."""
        return PlainTextResponse(
            content=metrics.to_prometheus(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    @app.get("/metrics/json")
    async def get_metrics_json() -> dict:
        return metrics.get_stats()

    # =========================================================================
    # Resources
    # =========================================================================

    @app.get("/v1/resources", response_model=ResourceListResponse)
    async def list_resources(
        services: Services = Depends(get_services),
    ) -> ResourceListResponse:
        """List all resources with their remaining capacity."""
        states = await services.resources.list_resources()
        return ResourceListResponse(
            resources=[ResourceView.from_state(s) for s in states],
            count=len(states),
        )

    @app.post(
        "/v1/resources",
        response_model=ResourceView,
        status_code=201,
        dependencies=[Depends(require_user)],
    )
    async def create_resource(
        body: ResourceWrite,
        services: Services = Depends(get_services),
    ) -> ResourceView:
        resource = await services.resources.create_resource(body.name, body.total_amount)
        return ResourceView(
            **resource.model_dump(),
            allocated_amount=0,
            remaining_amount=resource.total_amount,
        )

    @app.get("/v1/resources/{resource_id}", response_model=ResourceView)
    async def get_resource(
        resource_id: str,
        services: Services = Depends(get_services),
    ) -> ResourceView:
        state = await services.resources.get_resource(resource_id)
        return ResourceView.from_state(state)

    @app.put(
        "/v1/resources/{resource_id}",
        response_model=ResourceView,
        dependencies=[Depends(require_user)],
    )
    async def update_resource(
        resource_id: str,
        body: ResourceWrite,
        services: Services = Depends(get_services),
    ) -> ResourceView:
        """Rename and resize a resource.

        Raises:
            409: New total is below the amount already allocated
        """
        await services.resources.update_resource(resource_id, body.name, body.total_amount)
        state = await services.resources.get_resource(resource_id)
        return ResourceView.from_state(state)

    @app.delete(
        "/v1/resources/{resource_id}",
        response_model=MessageResponse,
        dependencies=[Depends(require_user)],
    )
    async def delete_resource(
        resource_id: str,
        services: Services = Depends(get_services),
    ) -> MessageResponse:
        """Delete a resource and every allocation on it."""
        await services.resources.delete_resource(resource_id)
        return MessageResponse(message=f"Resource '{resource_id}' deleted")

    # =========================================================================
    # Allocations
    # =========================================================================

    @app.get("/v1/allocations", response_model=AllocationListResponse)
    async def list_allocations(
        services: Services = Depends(get_services),
        user_id: str = Depends(require_user),
    ) -> AllocationListResponse:
        """List the caller's allocations with their resources."""
        items = await services.allocations.get_allocations_for_user(user_id)
        return AllocationListResponse(
            allocations=[AllocationView.from_joined(item) for item in items],
            count=len(items),
        )

    @app.post("/v1/allocations", response_model=AllocationChange)
    async def set_allocation(
        body: AllocationWrite,
        response: Response,
        services: Services = Depends(get_services),
        user_id: str = Depends(require_user),
    ) -> AllocationChange:
        """Set the caller's claim on a resource.

        Returns 201 when a new claim was created, 200 when an existing claim
        changed or was released.

        Raises:
            404: Resource not found
            409: Not enough remaining capacity (``details.available``)
        """
        result = await services.allocations.set_allocation(
            user_id, body.resource_id, body.amount,
        )
        if result.status == AllocationStatus.CREATED:
            response.status_code = status.HTTP_201_CREATED
        return AllocationChange.from_result(result)

    @app.delete("/v1/allocations", response_model=AllocationChange)
    async def release_allocation(
        resource_id: str = Query(..., min_length=1, description="Resource to release"),
        services: Services = Depends(get_services),
        user_id: str = Depends(require_user),
    ) -> AllocationChange:
        """Release the caller's claim on a resource. Idempotent."""
        result = await services.allocations.release_allocation(user_id, resource_id)
        return AllocationChange.from_result(result)

    return app


# Application instance for uvicorn
app = create_app()
