"""Provisioning worker task: runs the pipeline off the request path."""

from __future__ import annotations

import logging
import uuid

from salon_landing.core.database import async_session_factory
from salon_landing.core.errors import (
    AlreadyProvisionedError,
    ProvisioningError,
    ProvisioningFailedError,
    ProvisioningInProgressError,
)
from salon_landing.services.provisioning import ProvisioningOrchestrator

logger = logging.getLogger(__name__)


def _orchestrator(ctx: dict) -> ProvisioningOrchestrator:
    orchestrator = ctx.get("orchestrator")
    if orchestrator is None:
        orchestrator = ProvisioningOrchestrator.from_settings(async_session_factory)
        ctx["orchestrator"] = orchestrator
    return orchestrator


async def provision_request(ctx: dict, intake_request_id: str) -> dict:
    """ARQ task: provision one intake request.

    Returns a summary dict; the temporary secret only travels by email.
    """
    orchestrator = _orchestrator(ctx)
    try:
        result = await orchestrator.provision(uuid.UUID(intake_request_id))
    except AlreadyProvisionedError as exc:
        logger.info("Request %s already provisioned as %s", intake_request_id, exc.tenant_identifier)
        return {"status": "already_provisioned", "tenant_identifier": exc.tenant_identifier}
    except ProvisioningInProgressError:
        logger.info("Request %s is already being provisioned", intake_request_id)
        return {"status": "in_progress"}
    except ProvisioningFailedError as exc:
        return {
            "status": "failed",
            "step": exc.step,
            "error": str(exc.cause),
            "retryable": exc.retryable,
        }
    except ProvisioningError as exc:
        logger.warning("Request %s not provisioned: %s", intake_request_id, exc)
        return {"status": "rejected", "error": str(exc)}

    return {
        "status": "provisioned",
        "tenant_identifier": result.tenant_identifier,
        "account_id": str(result.account_id),
        "assets_degraded": result.assets_degraded,
        "materialization_failures": len(result.materialization_failures),
        "notified": result.notified,
    }
