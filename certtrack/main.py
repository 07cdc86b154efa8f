import logging
from typing import Dict

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from .certification_profile import CachePersistenceError
from .certification_routes import router as certification_router
from .config import get_settings
from .logging_config import configure_logging


settings_snapshot = get_settings()
configure_logging(settings_snapshot)
logger = logging.getLogger(__name__)

app = FastAPI(title="Certification Tracker Backend", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings_snapshot.allowed_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(certification_router)

logger.info("Backend starting with credential service: %s", settings_snapshot.credential_base_url)
logger.info("Refresh workers: %d, fetch timeout: %ss", settings_snapshot.refresh_workers, settings_snapshot.fetch_timeout_seconds)


@app.exception_handler(CachePersistenceError)
async def persistence_error_handler(request: Request, exc: CachePersistenceError) -> JSONResponse:
    logger.error("Persistence failure during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": str(exc)})


@app.get("/healthz")
def health() -> Dict[str, str]:
    return {"status": "ok"}
