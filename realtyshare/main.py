from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import routers as auth_router
from .chat import routers as chat_router
from .friendship import routers as friend_router
from .media import routers as media_router
from .notifications import routers as notification_router
from .presence import routers as presence_router
from .profiles import routers as profile_router

from .core.config import Settings
from .core.container import build_services
from .core.errors import RealtyShareError
from .core.middleware import logging_middleware
from .utils.logging_config import setup_logging


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        load_dotenv()
        settings = Settings.from_env()

    setup_logging(settings.log_level, settings.log_format)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = build_services(settings)
        await app.state.services.start()
        try:
            yield
        finally:
            await app.state.services.close()

    app = FastAPI(title="RealtyShare", lifespan=lifespan)

    app.include_router(auth_router.router, prefix="/auth", tags=["Authentication"])
    app.include_router(profile_router.router, prefix="/profiles", tags=["Profiles"])
    app.include_router(friend_router.router, prefix="/friends", tags=["Friendship"])
    app.include_router(chat_router.router, prefix="/chat", tags=["Chat"])
    app.include_router(presence_router.router, prefix="/presence", tags=["Presence"])
    app.include_router(
        notification_router.router, prefix="/notifications", tags=["Notifications"]
    )
    app.include_router(media_router.router, prefix="/media", tags=["Media"])

    @app.exception_handler(RealtyShareError)
    async def realtyshare_error_handler(request: Request, exc: RealtyShareError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": type(exc).__name__},
        )

    app.middleware("http")(logging_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "store": settings.store_backend}

    return app


app = create_app()
