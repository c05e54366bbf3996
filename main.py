import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

import routes
from config import Settings, configure_logging, get_settings
from errors import BookingError
from lifecycle import PaymentGateway, build_gateway
from persistence.db import init_db, make_engine, make_session_factory
from webhooks.webhooks import router as webhook_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    gateway: Optional[PaymentGateway] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = engine or make_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # initialize DB (creates tables)
        init_db(engine)
        yield

    app = FastAPI(title="Booking & Payments API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = make_session_factory(engine)
    app.state.gateway = gateway or build_gateway(settings)

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.code)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(routes.bookings)
    app.include_router(routes.payments)
    app.include_router(webhook_router)
    return app


app = create_app()
