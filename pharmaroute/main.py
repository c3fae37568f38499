# pharmaroute/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pharmaroute.core.config import Settings, get_settings
from pharmaroute.core.errors import DispatchError
from pharmaroute.core.events import EventBus
from pharmaroute.deps import build_repo
from pharmaroute.routers import clients as clients_router
from pharmaroute.routers import couriers as couriers_router
from pharmaroute.routers import dispatch as dispatch_router
from pharmaroute.routers import orders as orders_router
from pharmaroute.routers import pharmacy as pharmacy_router
from pharmaroute.services.board import DispatchBoard
from pharmaroute.services.lifecycle import OrderLifecycle
from pharmaroute.services.routing import GoogleDirectionsOracle

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, *, repo=None, oracle=None) -> FastAPI:
    """
    Composition root: one repository, one event bus and the services built
    on them, hung off ``app.state`` for the routers' dependencies.

    Served with ``uvicorn pharmaroute.main:create_app --factory``.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    repo = repo if repo is not None else build_repo(settings)
    bus = EventBus()
    board = DispatchBoard(repo)
    bus.subscribe(board.invalidate)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.use_mongo:
            from pharmaroute.core.db import get_client, get_db
            from pharmaroute.repos.mongo import ensure_indexes
            logger.info("Startup: ensuring Mongo indexes on %s", settings.mongo_db)
            await ensure_indexes(get_db())
        yield
        if settings.use_mongo:
            get_client().close()

    app = FastAPI(title=settings.project_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.repo = repo
    app.state.bus = bus
    app.state.board = board
    app.state.lifecycle = OrderLifecycle(repo, bus, settings)
    app.state.oracle = oracle if oracle is not None else GoogleDirectionsOracle.from_settings(settings)

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(orders_router.router)      # /api/orders
    app.include_router(dispatch_router.router)    # /api/dispatch
    app.include_router(couriers_router.router)    # /api/couriers
    app.include_router(clients_router.router)     # /api/clients
    app.include_router(pharmacy_router.router)    # /api/settings

    @app.get("/health")
    def health():
        return {"ok": True}

    return app
