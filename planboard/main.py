import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DBAPIError

from planboard import __version__
from planboard import api
from planboard.core.config import settings
from planboard.core.exceptions import (
    APIException,
    api_exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
    store_exception_handler,
    generic_exception_handler,
)
from planboard.core.logger import setup_logging

setup_logging()


def print_banner() -> None:
    """
    Prints the startup banner.
    :return: None
    """
    debug = "\033[38;5;226mON\033[0m" if settings.DEBUG else "\033[38;5;196mOFF\033[0m"

    banner = f"""
    \033[38;5;208m
    ┌─────────────────────────────────────────────┐
    │  \033[1mPlanboard\033[0m\033[38;5;208m  task hierarchy & kanban API     │
    └─────────────────────────────────────────────┘
    \033[0m\033[38;5;244m
      Version: v{__version__}
      Port:    {settings.PORT}
      Debug:   {debug}\033[38;5;244m
      Routers: {len(api.routers)}
    \033[0m
    """
    print(banner)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager
    :param app: FastAPI application
    """
    logger = logging.getLogger(__name__)

    if settings.ENVIRONMENT != "testing":
        print_banner()
    logger.info("🚀 Planboard API starting up...")
    logger.info(f"📍 Environment: {settings.ENVIRONMENT}")
    logger.info(f"🎯 Debug mode: {settings.DEBUG}")

    yield

    logger.info("⚡ Planboard API shutting down...")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.
    :return: FastAPI application
    """
    logging.getLogger("watchfiles.main").setLevel(logging.CRITICAL)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Task hierarchy, ordering and permissions for project boards",
        version=__version__,
        docs_url="/docs" if settings.DOCS_ENABLED else None,
        redoc_url="/redoc" if settings.DOCS_ENABLED else None,
        lifespan=lifespan,
    )
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler
    )
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(DBAPIError, store_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    api.init_routers()
    app.include_router(api.api_router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "planboard.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
