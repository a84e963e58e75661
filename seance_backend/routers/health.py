from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from seance_backend.db.base import engine

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, bool]:
    return {"ok": True}


@router.get("/db")
def health_db() -> dict[str, str]:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return {"db": "ok"}
    except Exception as exc:  # pragma: no cover - simple runtime check
        return {"db": f"error: {exc}"}


@router.get("/ping")
async def ping() -> dict[str, str]:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {"message": "pong", "timestamp": timestamp}
