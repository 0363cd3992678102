import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from campus_market.config import config
from campus_market.db import create_db_and_tables
from campus_market.routers import (
    admin, auth_router, categories, chat_support, chatbot, favorites,
    image_upload, listing, messages, orders, reviews, wallet,
)
from campus_market.storage import (
    ConflictError, InvalidOperationError, NotFoundError, PermissionDeniedError, StorageError,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

STORAGE_ERROR_STATUS = [
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (ConflictError, 409),
    (InvalidOperationError, 400),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Campus Market API...")
    config.validate()
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    create_db_and_tables()
    logger.info("API startup complete")
    yield
    logger.info("Shutting down Campus Market API...")


app = FastAPI(
    title=config.API_TITLE,
    version=config.API_VERSION,
    description=config.API_DESCRIPTION,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=config.CORS_ALLOW_CREDENTIALS,
    allow_methods=config.CORS_ALLOW_METHODS,
    allow_headers=config.CORS_ALLOW_HEADERS,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation error", "errors": errors})


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError):
    status_code = 500
    for error_type, code in STORAGE_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code == 500:
        logger.error("Unmapped storage error: %s", exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(auth_router.router)
app.include_router(categories.router)
app.include_router(listing.router)
app.include_router(image_upload.router)
app.include_router(favorites.router)
app.include_router(messages.router)
app.include_router(reviews.router)
app.include_router(wallet.router)
app.include_router(orders.router)
app.include_router(chat_support.router)
app.include_router(chatbot.router)
app.include_router(admin.router)

app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/")
def root():
    return {"message": "Campus Market backend is live"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "campus_market.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=config.LOG_LEVEL.lower(),
    )
