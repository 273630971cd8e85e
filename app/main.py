import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.middleware.cors import CORSMiddleware

from app.api.v1.admin.users import admin_router
from app.api.v1.audio.get_file import get_file_router
from app.api.v1.audio.manage_file import manage_file_router
from app.api.v1.audio.upload_file import upload_file_router
from app.api.v1.auth.auth_token import user_token_router
from app.api.v1.auth.me import user_me_router
from app.api.v1.auth.register import user_register_router
from app.core import custom_logging
from app.core.config import settings
from app.core.custom_logging import alog
from app.core.custom_logging import configure_logging
from app.core.custom_logging import logger
from app.core.errors import register_exception_handlers
from app.core.rate_limiting import auth_rate_limit
from app.core.rate_limiting import close_redis
from app.core.rate_limiting import global_rate_limit
from app.core.rate_limiting import init_redis
from app.db.session import database
from audio.storage import build_storage

configure_logging()


def configure_cors(a: FastAPI) -> None:
    if not settings.CORS_ORIGINS:
        return
    a.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).rstrip("/") for origin in settings.CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def setup_routers(a: FastAPI) -> None:
    auth_limit = [Depends(auth_rate_limit)]
    a.include_router(
        user_register_router, tags=["Auth"], prefix="/api/auth", dependencies=auth_limit
    )
    a.include_router(
        user_token_router, tags=["Auth"], prefix="/api/auth", dependencies=auth_limit
    )
    a.include_router(user_me_router, tags=["Auth"], prefix="/api/auth", dependencies=auth_limit)
    # Static paths first so that /user, /trending and /search are not read as ids
    a.include_router(upload_file_router, tags=["Audio"], prefix="/api/audio")
    a.include_router(get_file_router, tags=["Audio"], prefix="/api/audio")
    a.include_router(manage_file_router, tags=["Audio"], prefix="/api/audio")
    a.include_router(admin_router, tags=["Admin"], prefix="/api/admin")


def mount_local_storage(a: FastAPI) -> None:
    if settings.STORAGE_BACKEND != "local":
        return
    root = Path(settings.STORAGE_PATH)
    root.mkdir(parents=True, exist_ok=True)
    a.mount(settings.STATIC_URL_PREFIX, StaticFiles(directory=root), name="uploads")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Asynchronous context manager for FastAPI lifespan events (startup, shutdown).
    """
    try:
        await alog(logging.INFO, "Startup application...")
        app.state.storage = build_storage(settings)
        await database.initialize()
        await init_redis(app)

        yield  # Application is starting up

    finally:
        await close_redis(app)
        await database.dispose()
        await alog(logging.INFO, "Shutdown application...")
        if custom_logging.async_logger:
            custom_logging.async_logger.shutdown()


def create_app() -> FastAPI:
    logger.info(f"Starting {settings.PROJECT_NAME}")
    application = FastAPI(
        title=settings.PROJECT_NAME,
        summary="Mood and environment based audio clips",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        dependencies=[Depends(global_rate_limit)],
    )

    configure_cors(application)
    register_exception_handlers(application)
    setup_routers(application)
    mount_local_storage(application)

    @application.get("/api/health", tags=["Health"])
    async def health():
        return {"status": "OK"}

    return application


app = create_app()
