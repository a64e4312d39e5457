import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the package directory
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from sitepress.core.config import settings, validate_config  # noqa: E402
from sitepress.core.database import create_all_tables  # noqa: E402
from sitepress.core.logging import configure_logging  # noqa: E402
from sitepress.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from sitepress.core.validation import validate_env  # noqa: E402
from sitepress.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    validation_error_handler,
    unhandled_exception_handler,
)
from sitepress.api import health, plans, public  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("sitepress")
    logger.info("Starting sitepress backend...")
    if settings.ENV.lower() != "production":
        # Production schemas are managed out of band
        create_all_tables()
    try:
        yield
    finally:
        logging.getLogger("sitepress").info("Stopping sitepress backend...")


app = FastAPI(title="sitepress - Backend", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(plans.router)
app.include_router(public.router)
app.include_router(health.router)
