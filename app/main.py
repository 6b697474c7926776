"""Application entrypoint for the SmartVest API.

`create_application` builds every shared collaborator from one `Settings`
instance (database, Redis, email sender, identity provider), keeps them on
`app.state`, and wires the routers, route guard and CORS. Run it with
`uvicorn app.main:create_application --factory` or the `smartvest-api`
script.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis

from app.api.errors import register_exception_handlers
from app.api.routes import api_router, dashboard_router
from app.core.config import Settings, get_settings
from app.core.logging import configure_logging
from app.core.security import TokenIdentityProvider
from app.db.session import Database
from app.middlewares.route_guard import RouteGuardMiddleware
from app.services.email import EmailSender, build_email_sender

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create database tables on startup and dispose shared clients on shutdown."""

    await app.state.database.create_all()
    logger.info("%s %s started", app.title, app.version)
    yield
    await app.state.redis.aclose()
    await app.state.database.dispose()


def create_application(
    settings: Settings | None = None,
    *,
    redis: Redis | None = None,
    email_sender: EmailSender | None = None,
) -> FastAPI:
    """Assemble and configure the FastAPI application instance.

    Collaborators may be passed in (tests hand over a fake Redis and a
    recording sender); otherwise they are built from `settings`.
    """

    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    identity = TokenIdentityProvider.from_settings(settings)

    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.database = Database.from_settings(settings)
    application.state.redis = redis or Redis.from_url(settings.REDIS_URL, decode_responses=True)
    application.state.email_sender = email_sender or build_email_sender(settings)
    application.state.identity = identity

    application.add_middleware(
        RouteGuardMiddleware,
        identity=identity,
        cookie_name=settings.AUTH_COOKIE_NAME,
        signup_path=settings.SIGNUP_PATH,
        exempt_prefixes=settings.GUARD_EXEMPT_PREFIXES,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(application)
    application.include_router(api_router)
    application.include_router(dashboard_router)

    @application.get("/")
    async def root():
        """Public landing endpoint; the route guard never intercepts it."""
        return {"message": f"{settings.PROJECT_NAME} is running!"}

    return application


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:create_application", factory=True, host="0.0.0.0", port=8000)
