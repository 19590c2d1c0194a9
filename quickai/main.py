import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Load env from the project .env before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(package_dir), ".env"))

from quickai.core.config import settings, validate_config  # noqa: E402
from quickai.core.logging import configure_logging  # noqa: E402
from quickai.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from quickai.core.validation import validate_env  # noqa: E402
from quickai.core.database import create_all_tables  # noqa: E402
from quickai.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from quickai.api import ai, health, user  # noqa: E402
from quickai.features.identity.store import build_identity_store  # noqa: E402
from quickai.features.providers.registry import build_provider_registry  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("quickai")
    logger.info("Starting QuickAI backend...")

    try:
        create_all_tables()
    except Exception as e:
        logger.error(f"Could not prepare database tables: {e}")

    if getattr(app.state, "providers", None) is None:
        app.state.providers = build_provider_registry(settings)
    if getattr(app.state, "identity_store", None) is None:
        try:
            app.state.identity_store = build_identity_store(settings)
        except AppError as e:
            logger.error(f"Identity store unavailable: {e.message}")

    try:
        yield
    finally:
        logger.info("Stopping QuickAI backend...")


app = FastAPI(title="QuickAI - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ai.router)
app.include_router(user.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"message": "Server is Live!"}
