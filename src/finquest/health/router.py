"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from finquest.container import Services
from finquest.dependencies import get_services

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 while the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    services: Services = Depends(get_services),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: database, plus Redis when the app uses it."""
    checks: dict[str, object] = {}

    try:
        async with services.session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if services.redis is not None:
        try:
            await services.redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version(services: Services = Depends(get_services)) -> dict[str, str]:  # noqa: B008
    """API version and environment."""
    return {
        "version": services.settings.app_version,
        "environment": services.settings.environment,
    }
