"""
Health endpoints for the TaxDesk API, its Celery broker and backup store.

Checks:
- Database connectivity (all configured databases)
- Redis/Celery broker connectivity
- Backup storage (directory writable)
- Backup freshness (age of the last completed global backup)

Endpoints:
- /_health/live    - the process answers; no dependency is touched
- /_health/ready   - the default database is reachable (503 otherwise)
- /_health/full    - every check above, including backup freshness
"""
import logging
import os
import time
from pathlib import Path
from typing import Dict, Any

import redis
from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.utils import timezone
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round(duration_ms, 2),
            }
        except Exception as e:
            duration_ms = (time.time() - start) * 1000
            logger.warning("Database health check failed", extra={"alias": alias, "error": str(e)})
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_all_databases() -> Dict[str, Any]:
        """Check all configured databases."""
        results = {}
        all_healthy = True

        for alias in settings.DATABASES.keys():
            result = HealthCheck.check_database(alias)
            results[alias] = result
            if result["status"] != "healthy":
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "degraded",
            "databases": results,
        }

    @staticmethod
    def check_redis() -> Dict[str, Any]:
        """Check the Celery broker (Redis)."""
        redis_url = getattr(settings, "CELERY_BROKER_URL", None)
        if not redis_url or not redis_url.startswith(("redis://", "rediss://")):
            return {"status": "skipped", "reason": "Redis not configured"}

        start = time.time()
        try:
            client = redis.from_url(redis_url, socket_connect_timeout=2)
            client.ping()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "duration_ms": round(duration_ms, 2),
            }
        except redis.RedisError as e:
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "unhealthy",
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_backup_storage() -> Dict[str, Any]:
        """Check the backup directory exists (or can be created) and is writable."""
        backup_root = Path(settings.BACKUP_ROOT)
        try:
            backup_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return {"status": "unhealthy", "path": str(backup_root), "error": str(e)}

        if not os.access(backup_root, os.W_OK):
            return {
                "status": "unhealthy",
                "path": str(backup_root),
                "error": "Backup directory is not writable",
            }
        return {"status": "healthy", "path": str(backup_root)}

    @staticmethod
    def check_last_backup() -> Dict[str, Any]:
        """Check how old the most recent completed global backup is."""
        from backups.models import Backup

        last = (
            Backup.objects
            .filter(backup_type=Backup.BackupType.GLOBAL, status=Backup.Status.COMPLETED)
            .order_by("-completed_at")
            .first()
        )
        threshold = getattr(settings, "BACKUP_STALE_HOURS", 72)
        if last is None or last.completed_at is None:
            return {"status": "degraded", "reason": "No completed global backup", "threshold_hours": threshold}

        age_hours = (timezone.now() - last.completed_at).total_seconds() / 3600
        return {
            "status": "healthy" if age_hours < threshold else "degraded",
            "backup_id": last.pk,
            "age_hours": round(age_hours, 1),
            "threshold_hours": threshold,
        }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "databases": HealthCheck.check_all_databases(),
            "redis": HealthCheck.check_redis(),
            "backup_storage": HealthCheck.check_backup_storage(),
            "last_backup": HealthCheck.check_last_backup(),
        }

        # Determine overall status
        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s == "healthy" or s == "skipped" for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """Always 200 while the process serves requests."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """200 when the default database answers, 503 otherwise."""

    def get(self, request):
        db_check = HealthCheck.check_database("default")

        if db_check["status"] == "healthy":
            return JsonResponse({
                "status": "ready",
                "database": db_check,
            })
        else:
            return JsonResponse({
                "status": "not_ready",
                "database": db_check,
            }, status=503)


class FullHealthView(View):
    """Every check with its latency; 503 when any check is unhealthy. Keep off the public network."""

    def get(self, request):
        health = HealthCheck.get_full_health()

        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
