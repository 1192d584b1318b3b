import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from eventpass.config import settings
from eventpass.database import DatabasePool
from eventpass.core.logging import setup_logging
from eventpass.core.exceptions import command_exception_handler, general_exception_handler, CommandError
from eventpass.core.middleware import session_validation_middleware, request_logging_middleware, SESSION_COOKIE
from eventpass.core.dependencies import build_services
from eventpass.services.notifications import EmailNotificationQueue
from eventpass.tasks.notifications import run_notification_worker

# Initialize logging
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    # Startup: a missing signing key aborts here, before any request is served
    queue = EmailNotificationQueue()
    app.state.services = build_services(settings.qr_secret_key, queue)
    notification_task = asyncio.create_task(run_notification_worker(queue))

    yield

    # Shutdown: stop the worker, then release the pool
    notification_task.cancel()
    try:
        await notification_task
    except asyncio.CancelledError:
        pass
    await DatabasePool.close_pool()


app = FastAPI(
    title="EventPass API",
    description="Ticket issuance, QR check-in and cancellation",
    version="1.0.0",
    debug=settings.debug,
    docs_url="/docs",
    lifespan=lifespan
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title="EventPass API",
        version="1.0.0",
        description="Ticket issuance, QR check-in and cancellation",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "cookieAuth": {
            "type": "apiKey",
            "in": "cookie",
            "name": SESSION_COOKIE
        }
    }

    public_endpoints = ["/health", "/"]

    for path in openapi_schema["paths"]:
        if path in public_endpoints:
            continue

        for method in openapi_schema["paths"][path]:
            if method in ["get", "post", "put", "delete", "patch"]:
                openapi_schema["paths"][path][method]["security"] = [{"cookieAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

# Exception handlers
app.add_exception_handler(CommandError, command_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (order matters - first added runs last)
app.middleware("http")(request_logging_middleware)    # runs last
app.middleware("http")(session_validation_middleware)  # runs first

from eventpass.routers import registrations, check_in

# Issuance, cancellation and ticket QR (requires auth)
app.include_router(registrations.router, tags=["registrations"])

# Entrance scanning (requires auth, staff only)
app.include_router(check_in.router, prefix="/check-in", tags=["check-in"])


@app.get("/")
async def root():
    return {
        "service": "EventPass API",
        "version": "1.0.0",
        "database": settings.db_name,
        "environment": settings.app_env
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "database": settings.db_name,
        "host": settings.db_host
    }


# Auto-start server if run directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "eventpass.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
