from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import sourcing
from app.core.config import settings
from app.core.errors import (
    SourcingError, NotFoundError, ValidationError, InsufficientDataError, ConflictError
)
from app.core.logging import setup_logging, get_logger

setup_logging()
logger = get_logger(__name__)

# Transport mapping for the sourcing core's error kinds
ERROR_STATUS_CODES = {
    NotFoundError: 404,
    ValidationError: 400,
    InsufficientDataError: 422,
    ConflictError: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db.session import init_db
    init_db()
    yield


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SourcingError)
async def sourcing_error_handler(request: Request, exc: SourcingError):
    status_code = next(
        (code for cls, code in ERROR_STATUS_CODES.items() if isinstance(exc, cls)),
        400,
    )
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(sourcing.router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
