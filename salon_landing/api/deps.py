"""FastAPI dependencies: sessions, admin authentication, service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from salon_landing.core.database import async_session_factory, get_session
from salon_landing.core.security import verify_admin_token
from salon_landing.services.object_store import CloudinaryObjectStore, ObjectStore
from salon_landing.services.provisioning import ProvisioningOrchestrator

bearer_scheme = HTTPBearer(auto_error=False)


async def require_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> None:
    """Back-office endpoints accept only the configured admin token."""
    if credentials is None or not verify_admin_token(credentials.credentials):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_object_store() -> ObjectStore:
    return CloudinaryObjectStore.from_settings()


def get_orchestrator() -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator.from_settings(async_session_factory)


# Typed shorthand for use in route signatures
AdminAuth = Depends(require_admin)
Session = Annotated[AsyncSession, Depends(get_session)]
Objects = Annotated[ObjectStore, Depends(get_object_store)]
Orchestrator = Annotated[ProvisioningOrchestrator, Depends(get_orchestrator)]
