import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError

from .config import Settings
from .db import DocumentStore
from .errors import StoreUnavailableError
from .legacy.shopify import ShopifyConfig, ShopifyMetafieldClient
from .normalizer import utc_now_iso
from .routes import error_response, router
from .service import LegacyPassportSource, PassportService

APP_VERSION = "1.0.0"
logger = logging.getLogger("tastetracker.http")
logger.setLevel(logging.INFO)


def build_shopify_client(settings: Settings) -> ShopifyMetafieldClient:
    return ShopifyMetafieldClient(
        ShopifyConfig(
            shop_domain=settings.shop_domain,
            admin_token=settings.admin_token,
            api_version=settings.api_version,
            timeout=settings.remote_timeout,
        )
    )


def apply_cors_headers(response: Response, origin: Optional[str], allowed_origins: tuple[str, ...]) -> None:
    if origin and origin in allowed_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Allow-Credentials"] = "false"


def create_app(
    settings: Settings,
    store: Optional[DocumentStore] = None,
    legacy: Optional[LegacyPassportSource] = None,
    clock: Callable[[], str] = utc_now_iso,
) -> FastAPI:
    store = store or DocumentStore(settings.database_url, clock=clock)
    legacy = legacy or build_shopify_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not store.is_connected:
            try:
                store.connect()
            except Exception:
                logger.exception("Could not connect to the passport store, refusing to start")
                raise
        yield
        store.close()
        close = getattr(legacy, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="Alfie Taste Tracker", version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.passport_service = PassportService(store, legacy, clock=clock)
    app.include_router(router)

    @app.middleware("http")
    async def cors(request: Request, call_next):
        origin = request.headers.get("origin")
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        apply_cors_headers(response, origin, settings.allowed_origins)
        return response

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError):
        return error_response(503, str(exc))

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        return error_response(400, "Invalid request body")

    return app
