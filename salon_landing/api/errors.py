"""Translate domain exceptions into HTTP errors."""

from fastapi import HTTPException, status

from salon_landing.core.errors import (
    AccountNotFoundError,
    ConflictError,
    ExternalServiceError,
    IntakeRequestNotFoundError,
    ProvisioningError,
    ProvisioningFailedError,
    StagedAssetSetNotFoundError,
    ValidationError,
)

_NOT_FOUND = (AccountNotFoundError, IntakeRequestNotFoundError, StagedAssetSetNotFoundError)


def to_http(exc: ProvisioningError) -> HTTPException:
    if isinstance(exc, _NOT_FOUND):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ProvisioningFailedError):
        detail = {"step": exc.step, "error": str(exc.cause), "retryable": exc.retryable}
        if isinstance(exc.cause, ValidationError):
            code = status.HTTP_422_UNPROCESSABLE_CONTENT
        elif isinstance(exc.cause, ConflictError):
            code = status.HTTP_409_CONFLICT
        elif isinstance(exc.cause, ExternalServiceError):
            code = status.HTTP_503_SERVICE_UNAVAILABLE
        else:
            code = status.HTTP_500_INTERNAL_SERVER_ERROR
        return HTTPException(status_code=code, detail=detail)
    if isinstance(exc, ExternalServiceError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
