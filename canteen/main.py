import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from canteen.core.config import Settings, settings
from canteen.application.order_service import OrderService
from canteen.domain.errors import CanteenError
from canteen.domain.events import STAFF_ROOM
from canteen.infrastructure.broadcaster import Broadcaster
from canteen.infrastructure.database import build_session_factory, create_tables
from canteen.infrastructure.notification_service import NotificationService
from canteen.infrastructure.repositories.order_repository import SqlOrderRepository
from canteen.interfaces import order_routes, payment_webhook, staff_routes, staff_socket
from canteen.interfaces.dependencies import error_body

logger = logging.getLogger("canteen")


async def connect_database(session_factory, max_retries: int, wait_seconds: float):
    """Create tables, waiting for the database to come up."""
    for attempt in range(max_retries):
        try:
            logger.info(f"🔄 Attempting DB connection ({attempt + 1}/{max_retries})...")
            create_tables(session_factory)
            logger.info("✅ DB Connected and Tables Created.")
            return
        except OperationalError:
            logger.warning(f"⚠️ DB not ready yet. Waiting {wait_seconds}s...")
            await asyncio.sleep(wait_seconds)
    raise RuntimeError(f"Could not connect to DB after {max_retries} attempts")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings
    logging.basicConfig(
        level=app_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # ---------------------------------------------------------
    # COMPOSITION ROOT
    # ---------------------------------------------------------
    session_factory = build_session_factory(app_settings.DATABASE_URL)
    order_repo = SqlOrderRepository(session_factory, timezone_name=app_settings.TIMEZONE)
    broadcaster = Broadcaster(app_settings.REDIS_URL, channel=app_settings.REDIS_CHANNEL)
    notifier = NotificationService(
        app_settings.TWILIO_ACCOUNT_SID,
        app_settings.TWILIO_AUTH_TOKEN,
        app_settings.TWILIO_FROM_NUMBER,
    )
    order_service = OrderService(
        order_repo=order_repo,
        broadcaster=broadcaster,
        notifier=notifier,
        auto_prepare_on_payment=app_settings.AUTO_PREPARE_ON_PAYMENT,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await connect_database(session_factory, app_settings.DB_MAX_RETRIES, app_settings.DB_RETRY_SECONDS)
        await broadcaster.start()
        yield
        await broadcaster.stop()

    app = FastAPI(title=app_settings.PROJECT_NAME, lifespan=lifespan)
    app.state.settings = app_settings
    app.state.broadcaster = broadcaster
    app.state.order_service = order_service

    # Include Routers
    app.include_router(order_routes.router, prefix=app_settings.API_PREFIX)
    app.include_router(staff_routes.router, prefix=app_settings.API_PREFIX)
    app.include_router(payment_webhook.router, prefix=app_settings.API_PREFIX)
    app.include_router(staff_socket.router)

    @app.exception_handler(CanteenError)
    async def canteen_error_handler(request: Request, exc: CanteenError):
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code} ({exc.message})")
        return JSONResponse(error_body(exc.code, exc.message), status_code=exc.http_status)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        message = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(error_body("VALIDATION_ERROR", message), status_code=422)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"❌ Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(error_body("INTERNAL_ERROR", "Internal Server Error"), status_code=500)

    @app.get("/")
    def health_check():
        return {
            "status": "active",
            "system": "Canteen Order Pipeline",
            "redis": broadcaster.redis_available,
            "staffTerminals": broadcaster.room_size(STAFF_ROOM),
        }

    return app


app = create_app()
