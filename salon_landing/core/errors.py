"""Domain exceptions raised by the provisioning services.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""

from __future__ import annotations

from typing import Any


class ProvisioningError(Exception):
    """Base class for every error raised by the provisioning core."""


# ── Validation (rejected before any write) ────────────────────

class ValidationError(ProvisioningError):
    """Bad input. Safe to fix and resubmit."""


class InvalidBaseNameError(ValidationError):
    """A business name normalizes to nothing usable as an identifier."""


class InvalidIdentifierError(ValidationError):
    """A tenant identifier does not match the required format."""


class InvalidTransitionError(ValidationError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move intake request from '{current}' to '{target}'")
        self.current = current
        self.target = target


class DuplicateEmailError(ValidationError):
    def __init__(self, email: str) -> None:
        super().__init__(f"An account with email '{email}' already exists")
        self.email = email


class IntakeRequestNotFoundError(ProvisioningError):
    def __init__(self, request_id: Any) -> None:
        super().__init__(f"Intake request {request_id} not found")
        self.request_id = request_id


class AccountNotFoundError(ProvisioningError):
    def __init__(self, account_id: Any) -> None:
        super().__init__(f"Account {account_id} not found")
        self.account_id = account_id


class StagedAssetSetNotFoundError(ProvisioningError):
    def __init__(self, staging_key: str) -> None:
        super().__init__(f"No staged assets for key '{staging_key}'")
        self.staging_key = staging_key


# ── Conflicts ─────────────────────────────────────────────────

class ConflictError(ProvisioningError):
    """Concurrent state change."""


class ProvisioningInProgressError(ConflictError):
    def __init__(self, request_id: Any) -> None:
        super().__init__(f"Intake request {request_id} is already being provisioned")
        self.request_id = request_id


class RequestWithdrawnError(ConflictError):
    def __init__(self, request_id: Any, status: str) -> None:
        super().__init__(f"Intake request {request_id} was withdrawn (status '{status}')")
        self.request_id = request_id
        self.status = status


# ── Allocation ────────────────────────────────────────────────

class AllocationExhaustedError(ProvisioningError):
    """Collision-retry cap exceeded while looking for a free name."""

    def __init__(self, base: str, attempts: int) -> None:
        super().__init__(f"No free name for base '{base}' after {attempts} attempts")
        self.base = base
        self.attempts = attempts


# ── Pipeline outcomes ─────────────────────────────────────────

class AlreadyProvisionedError(ProvisioningError):
    """The request already owns a tenant. Carries the existing linkage."""

    def __init__(
        self,
        request_id: Any,
        tenant_identifier: str,
        account_id: Any | None,
    ) -> None:
        super().__init__(
            f"Intake request {request_id} is already provisioned as '{tenant_identifier}'"
        )
        self.request_id = request_id
        self.tenant_identifier = tenant_identifier
        self.account_id = account_id


class ProvisioningFailedError(ProvisioningError):
    """A pipeline step failed; committed partial state is left in place."""

    def __init__(
        self,
        step: str,
        cause: BaseException,
        tenant_identifier: str | None = None,
    ) -> None:
        super().__init__(f"Provisioning failed at step '{step}': {cause}")
        self.step = step
        self.cause = cause
        self.tenant_identifier = tenant_identifier

    @property
    def retryable(self) -> bool:
        return not isinstance(self.cause, (ValidationError, ConflictError))


# ── Collaborators ─────────────────────────────────────────────

class ExternalServiceError(ProvisioningError):
    """Document store or object store unavailable / misbehaving."""


class ObjectNotFoundError(ExternalServiceError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Object '{key}' not found")
        self.key = key


class DocumentExistsError(ProvisioningError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Document '{path}' already exists")
        self.path = path


class DocumentNotFoundError(ProvisioningError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Document '{path}' not found")
        self.path = path
