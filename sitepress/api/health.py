"""
Liveness and readiness probes. Neither requires a session nor reveals
connection details.
"""

import logging
from typing import List

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from sitepress.core.database import get_engine, metadata

logger = logging.getLogger("sitepress")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = sorted(metadata.tables)


def _missing_tables() -> List[str]:
    """Check the database connection; raises if it cannot be reached."""
    engine = get_engine()
    with engine.connect() as conn:
        conn.exec_driver_sql("SELECT 1")
    inspector = inspect(engine)
    return [name for name in REQUIRED_TABLES if not inspector.has_table(name)]


def _not_ready(detail: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "error", "detail": detail})


@router.get("/healthz")
def healthz():
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Ready once the database answers and the schema is in place."""
    try:
        missing = _missing_tables()
    except Exception as e:
        logger.error(f"readyz.database_unreachable: {e}")
        return _not_ready("database unreachable")

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"readyz.{detail}")
        return _not_ready(detail)
    return {"status": "ok"}
