import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from clinicflow.core.config import get_settings
from clinicflow.api.v1.router import api_router
from clinicflow.services.errors import ClinicError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Clinic Workflow Backend",
)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    """
    Map service-layer errors to HTTP responses with a ``detail`` message,
    the same shape FastAPI uses for HTTPException.
    """
    if exc.status_code >= 409:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health", tags=["health"])
async def root_health() -> dict:
    """
    Global health check endpoint.
    """
    return {"status": "ok"}


# Mount versioned API router
app.include_router(api_router, prefix=settings.api_v1_prefix)
