import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from config import get_settings
from mission_media.dependencies import get_image_gateway, get_mission_repository
from mission_media.errors import ServiceError, ValidationError
from mission_media.gateway import ImageGateway
from mission_media.imaging import TransformRequest
from mission_media.repositories import MissionRepository
from mission_media.schemas import MissionListResponse, MissionRecord

# Get settings and configure logging before anything else
settings = get_settings()
settings.configure_logging()

# Create logger for this module
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Storage type: {settings.storage_type}")
    logger.info(f"Mission table: {settings.mission_table}")
    logger.info(f"Image bucket: {settings.sat_images_bucket}")

    yield

    # Shutdown
    logger.info("Shutting down application")


# Create FastAPI app with settings
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Content-Length", "Accept-Ranges", "ETag"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render service errors as a small JSON body; detail stays in the logs."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Reject malformed query parameters and headers with 400."""
    logger.warning(f"Invalid request parameters for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "invalid request parameters"})


@app.get("/ping")
def ping() -> dict[str, str]:
    """Liveness probe."""
    return {"message": "pong"}


@app.get("/health")
def health_check() -> dict[str, str]:
    """Simple health-check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": settings.app_version,
    }


@app.get("/config")
def get_config() -> dict[str, Any]:
    """Get current configuration (non-sensitive values only)."""
    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "environment": settings.environment,
        "debug": settings.debug,
        "storage_type": settings.storage_type,
        "transform_output_format": settings.transform_output_format,
        "jpeg_quality": settings.jpeg_quality,
        "max_transform_dimension": settings.max_transform_dimension,
        "default_page_size": settings.default_page_size,
        "max_page_size": settings.max_page_size,
        "log_level": settings.log_level,
        "log_json": settings.log_json,
    }


@app.get(
    "/missions",
    response_model=MissionListResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
    tags=["missions"],
)
async def list_missions(
    count: Optional[int] = Query(default=None, description="Page size, 1..100 (default 10)"),
    next_token: Optional[str] = Query(
        default=None,
        alias="nextToken",
        description="Opaque token returned by the previous page",
    ),
    mission_repo: MissionRepository = Depends(get_mission_repository),
) -> MissionListResponse:
    """List missions one page at a time.

    Args:
        count: Requested page size; larger values are clamped to the maximum.
        next_token: Continuation token from a previous response.
        mission_repo: Mission repository

    Returns:
        MissionListResponse: Missions on this page and the next token, if any.
    """
    return await mission_repo.list_missions(count, next_token)


@app.get("/mission/", tags=["missions"], include_in_schema=False)
async def get_mission_without_id() -> None:
    raise ValidationError("missing id")


@app.get("/mission/{mission_id}", response_model=MissionRecord, tags=["missions"])
async def get_mission(
    mission_id: str,
    mission_repo: MissionRepository = Depends(get_mission_repository),
) -> MissionRecord:
    """Get one mission by id."""
    return await mission_repo.get_mission(mission_id)


@app.get("/image/", tags=["images"], include_in_schema=False)
async def get_image_without_id() -> None:
    raise ValidationError("missing id")


@app.get("/image/{image_id}", response_class=Response, tags=["images"])
async def get_image(
    image_id: str,
    width: int = Query(default=0, ge=0, description="Target width in pixels, 0 = unset"),
    height: int = Query(default=0, ge=0, description="Target height in pixels, 0 = unset"),
    contrast: float = Query(
        default=0.0,
        ge=-100.0,
        le=100.0,
        description="Contrast change in percent, 0 = unchanged",
    ),
    range_header: Optional[str] = Header(default=None, alias="Range"),
    gateway: ImageGateway = Depends(get_image_gateway),
) -> Response:
    """Serve a mission image.

    Without transform parameters the object is streamed through, honouring
    byte ranges. With width, height or contrast set it is resized and/or
    contrast-adjusted and returned fully buffered.

    Args:
        image_id: Image identifier
        width: Target width, the other side follows the aspect ratio if unset
        height: Target height, the other side follows the aspect ratio if unset
        contrast: Contrast adjustment percentage
        range_header: Byte range, only honoured without transform parameters
        gateway: Image delivery gateway

    Returns:
        Response: Binary image response
    """
    transform = TransformRequest(width=width, height=height, contrast=contrast)
    return await gateway.deliver(image_id, range_header, transform)
