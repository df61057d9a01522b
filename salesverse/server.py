"""
Salesverse CRM - API Backend

Démarre avec:
    uvicorn salesverse.server:app --host 0.0.0.0 --port 8001 --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salesverse import __version__
from salesverse.config import CORS_ORIGINS, DB_NAME, LOG_LEVEL, MONGO_URL, get_database
from salesverse.container import build_services, ensure_indexes
from salesverse.errors import CRMError
from salesverse.routes import agents, applications, leads, notifications, projects
from salesverse.routes.responses import failure

# Configuration logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("salesverse")


def _validation_details(exc: RequestValidationError) -> list:
    details = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error["loc"] if p != "body")
        details.append(f"{location}: {error['msg']}" if location else error["msg"])
    return details


def create_app(db=None) -> FastAPI:
    """
    Args:
        db: base motor déjà construite (tests). Sinon la connexion est ouverte au démarrage.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if db is None:
            client, database = get_database(MONGO_URL, DB_NAME)
            await ensure_indexes(database)
            app.state.services = build_services(database)
            logger.info(f"🚀 Salesverse CRM v{__version__} démarré (db={DB_NAME})")

        yield

        await app.state.services.notifier.drain()
        if client is not None:
            client.close()
            logger.info("MongoDB connection closed")

    app = FastAPI(
        title="Salesverse CRM",
        description="Leads, agents et onboarding (AOB)",
        version=__version__,
        lifespan=lifespan,
    )

    # Base injectée : services disponibles sans attendre le lifespan
    if db is not None:
        app.state.services = build_services(db)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== ERREURS ====================

    @app.exception_handler(CRMError)
    async def crm_error_handler(request: Request, exc: CRMError):
        if exc.status_code >= 500:
            logger.error(f"[API] {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=failure("Validation failed", _validation_details(exc)))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"[API] Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=failure("Internal server error"))

    # ==================== ROUTES ====================

    app.include_router(leads.router, prefix="/api")
    app.include_router(applications.router, prefix="/api")
    app.include_router(agents.router, prefix="/api")
    app.include_router(projects.router, prefix="/api")
    app.include_router(notifications.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "name": "Salesverse CRM API",
            "version": __version__,
            "status": "running",
            "docs": "/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
