"""Import all models so SQLModel.metadata picks them up."""

from salon_landing.models.account import (
    Account,
    AccountRead,
    AccountStatus,
    AccountStatusUpdate,
)
from salon_landing.models.document import StoredDocument
from salon_landing.models.intake import (
    IntakeCreate,
    IntakeRead,
    IntakeRequest,
    IntakeStatus,
    IntakeStatusUpdate,
    PaymentConfirmation,
    TenantProfile,
)
from salon_landing.models.staging import (
    AssetCategory,
    StagedAssetCreate,
    StagedAssetSet,
    StagedAssetSetRead,
    StagingStatus,
)

__all__ = [
    "Account",
    "AccountRead",
    "AccountStatus",
    "AccountStatusUpdate",
    "AssetCategory",
    "IntakeCreate",
    "IntakeRead",
    "IntakeRequest",
    "IntakeStatus",
    "IntakeStatusUpdate",
    "PaymentConfirmation",
    "StagedAssetCreate",
    "StagedAssetSet",
    "StagedAssetSetRead",
    "StagingStatus",
    "StoredDocument",
    "TenantProfile",
]
