import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docstore.api.routes import router as api_router
from docstore.config import Settings, get_settings, public_settings, setup_logging
from docstore.errors import DocStoreError, RateLimitError, ValidationError
from docstore.services import Services, build_services

logger = logging.getLogger("docstore")


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    settings = services.settings if services else (settings or get_settings())
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            app.state.services = build_services(settings)
        logger.info("Application starting")
        logger.info("Loaded settings: %s", public_settings(settings))
        yield

    app = FastAPI(title="docstore", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.exception_handler(DocStoreError)
    async def docstore_error_handler(request: Request, exc: DocStoreError):
        if exc.status_code >= 500:
            logger.error("Request failed", extra={"path": request.url.path, "code": exc.code, "error": exc.message})
        headers = {}
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers["Retry-After"] = str(int(exc.retry_after))
        if exc.code == "auth_error":
            headers["WWW-Authenticate"] = "Bearer"
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers or None)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{where}: {first.get('msg', 'invalid request')}" if where else "Invalid request"
        error = ValidationError(message, details={"errors": len(errors)})
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run("docstore.main:app", host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    run()
