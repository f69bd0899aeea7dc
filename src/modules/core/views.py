import time
from typing import Any, Dict

import structlog
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.core.models import EventStatus, OutboxEvent

logger = structlog.get_logger()


def health_check(request: HttpRequest) -> JsonResponse:
    services: Dict[str, Dict[str, Any]] = {}
    overall_healthy = True

    # Check database
    try:
        start = time.monotonic()
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        services["database"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["database"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_db_failure")

    # Check cache (Redis)
    try:
        start = time.monotonic()
        cache.set("_health_check", "ok", 10)
        result = cache.get("_health_check")
        if result != "ok":
            raise ConnectionError("Cache read failed")
        services["cache"] = {
            "status": "up",
            "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        }
    except Exception:
        services["cache"] = {"status": "down"}
        overall_healthy = False
        logger.error("health_check_cache_failure")

    # Outbox backlog is informational: a growing FAILED count needs an operator
    if services["database"]["status"] == "up":
        services["outbox"] = {
            "pending": OutboxEvent.objects.filter(status=EventStatus.PENDING).count(),
            "failed": OutboxEvent.objects.filter(status=EventStatus.FAILED).count(),
        }

    status_code = 200 if overall_healthy else 503

    logger.info(
        "health_check_completed", status="healthy" if overall_healthy else "unhealthy"
    )

    return JsonResponse(
        {
            "status": "healthy" if overall_healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=status_code,
    )
