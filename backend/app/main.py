from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.live import router as live_router
from app.api.runs import router as runs_router
from app.core.config import Settings, settings as default_settings
from app.core.log_config import configure_logging
from app.db import init_db, make_engine, make_session_factory
from app.store import RunStore
from app.tracking.controller import LiveRunController
from app.tracking.errors import PersistenceFailure
from app.tracking.location import PushLocationSource
from app.tracking.sinks import LiveMapState


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build an app with its own engine, store and live run controller."""
    settings = settings or default_settings
    configure_logging(settings.log_level)

    engine = make_engine(settings.database_url)
    store = RunStore(make_session_factory(engine))
    live_source = PushLocationSource()
    live_map = LiveMapState()
    live = LiveRunController.from_settings(live_source, store, settings, render=live_map)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create DB tables on startup
        init_db(engine)
        yield
        await live.aclose()
        engine.dispose()

    app = FastAPI(lifespan=lifespan)

    # Allow CORS for local frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.live_source = live_source
    app.state.live_map = live_map
    app.state.live = live

    @app.exception_handler(PersistenceFailure)
    async def persistence_failure_handler(request: Request, exc: PersistenceFailure):
        return JSONResponse(
            status_code=503,
            content={"detail": str(exc), "retry": True},
        )

    app.include_router(live_router)
    app.include_router(runs_router)

    @app.get("/")
    def root():
        return {"message": "Stride backend is running"}

    return app


app = create_app()
