import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from controlplane.api.routers import storage as storage_router
from controlplane.core.config import get_settings
from controlplane.services.presign import get_presign_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not get_presign_service().is_configured:
        logger.error("SECRET_KEY or NODE_ENDPOINT is empty; presigned URL issuance is disabled")
    yield


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for error in exc.errors():
        if error["type"] == "json_invalid":
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Malformed JSON body"},
            )
        field = ".".join(str(part) for part in error["loc"] if part != "body") or "body"
        errors[field] = error["msg"]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=errors)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        debug=settings.debug,
        title="Object Storage Control Plane",
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(storage_router.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "signing_configured": get_presign_service().is_configured}

    return app


app = create_app()
