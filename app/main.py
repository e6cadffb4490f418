from fastapi import FastAPI
from app.core.config import settings
from app.core.errors import EntitlementError, entitlement_error_handler
from app.core.logging import configure_logging
from app.db.session import SessionLocal
from app.services.entitlement_query import EntitlementQueryService, make_db_fetcher

# Import routers
from app.api.auth import router as auth_router
from app.api.billing import router as billing_router
from app.api.webhook import router as webhook_router
from app.api.entitlements import router as entitlements_router
from app.api.access import router as access_router

def create_app(session_factory=SessionLocal) -> FastAPI:
    configure_logging(settings.log_level, settings.app_env)

    app = FastAPI(title=settings.app_name)

    # One shared entitlement cache per process
    app.state.entitlement_service = EntitlementQueryService(
        make_db_fetcher(session_factory),
        ttl_seconds=settings.entitlement_cache_ttl_seconds,
        maxsize=settings.entitlement_cache_maxsize,
    )

    app.add_exception_handler(EntitlementError, entitlement_error_handler)

    @app.get("/health")
    def health():
        return {"status" : "ok", "env" : settings.app_env}

    # Include authentication routes
    app.include_router(auth_router)
    # Include checkout / portal routes
    app.include_router(billing_router)
    # Include Stripe webhook route
    app.include_router(webhook_router)
    # Include entitlement read + admin override routes
    app.include_router(entitlements_router)
    # Include access guard routes
    app.include_router(access_router)

    return app

app = create_app()
