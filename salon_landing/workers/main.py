"""ARQ worker entrypoint."""

import asyncio

from arq import cron
from arq.connections import RedisSettings

from salon_landing.core.config import get_settings
from salon_landing.workers.provisioning import provision_request
from salon_landing.workers.reconcile import reconcile_provisioning_markers


def _redis_settings() -> RedisSettings:
    """Parse REDIS_URL into ARQ RedisSettings."""
    return RedisSettings.from_dsn(get_settings().redis_url)


async def startup(ctx: dict) -> None:
    """Called when the worker starts."""
    from salon_landing.core.database import init_db
    from salon_landing.core.logging_config import setup_logging

    setup_logging(get_settings().log_level)
    await init_db()


async def shutdown(ctx: dict) -> None:
    """Called when the worker shuts down."""


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [provision_request]
    cron_jobs = [
        cron(reconcile_provisioning_markers, minute={0, 15, 30, 45}, run_at_startup=True),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 10
    job_timeout = 300
    # Failed provisioning runs are retried by an operator, not by arq
    max_tries = 1


if __name__ == "__main__":
    from arq import run_worker
    asyncio.run(run_worker(WorkerSettings))  # type: ignore[arg-type]
