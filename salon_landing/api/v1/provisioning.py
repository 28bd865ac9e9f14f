"""Synchronous provisioning trigger for the back office."""

import uuid

from fastapi import APIRouter, Query
from pydantic import BaseModel

from salon_landing.api.deps import AdminAuth, Orchestrator
from salon_landing.api.errors import to_http
from salon_landing.core.errors import AlreadyProvisionedError, ProvisioningError

router = APIRouter(prefix="/intake-requests", tags=["provisioning"])


class ProvisionResponse(BaseModel):
    request_id: uuid.UUID
    tenant_identifier: str
    account_id: uuid.UUID | None
    account_handle: str | None = None
    already_provisioned: bool = False
    staff_count: int = 0
    services_created: int = 0
    products_created: int = 0
    assets_degraded: bool = False
    materialization_failures: list[str] = []
    notified: bool = False
    # Only returned when the credentials email could not be delivered
    temporary_secret: str | None = None


@router.post(
    "/{request_id}/provision",
    response_model=ProvisionResponse,
    dependencies=[AdminAuth],
)
async def provision_intake_request(
    request_id: uuid.UUID,
    orchestrator: Orchestrator,
    force: bool = Query(default=False),
) -> ProvisionResponse:
    """Run the full provisioning pipeline for a paid request.

    A request that already owns a tenant is answered with its existing
    linkage instead of an error. A request already in ``provisioning`` is
    answered with 409 unless its attempt stalled or ``force`` is set.
    """
    try:
        result = await orchestrator.provision(request_id, force=force)
    except AlreadyProvisionedError as exc:
        return ProvisionResponse(
            request_id=request_id,
            tenant_identifier=exc.tenant_identifier,
            account_id=exc.account_id,
            already_provisioned=True,
        )
    except ProvisioningError as exc:
        raise to_http(exc) from exc

    return ProvisionResponse(
        request_id=result.request_id,
        tenant_identifier=result.tenant_identifier,
        account_id=result.account_id,
        account_handle=result.account_handle,
        staff_count=result.staff_count,
        services_created=result.services_created,
        products_created=result.products_created,
        assets_degraded=result.assets_degraded,
        materialization_failures=result.materialization_failures,
        notified=result.notified,
        temporary_secret=None if result.notified else result.temporary_secret,
    )
