"""Asset promotion: move staged media under the tenant's own prefix.

Every asset ends up with exactly one outcome. The fallback chain is

    rename -> destination already there -> re-upload from URL -> keep original

and only the last step marks the asset as degraded. Per-asset failures are
never raised; the caller reads ``PromotedAssetSet.degraded`` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from salon_landing.core.errors import ExternalServiceError, ObjectNotFoundError
from salon_landing.models.staging import AssetCategory, StagedAssetSet
from salon_landing.services.identifiers import validate_identifier
from salon_landing.services.object_store import ObjectStore

logger = logging.getLogger(__name__)


class PromotionMethod(StrEnum):
    MOVED = "moved"
    EXISTING = "existing"
    REUPLOADED = "reuploaded"
    ORIGINAL = "original"


@dataclass
class AssetOutcome:
    category: AssetCategory
    index: int
    original_url: str
    url: str
    method: PromotionMethod
    error: str | None = None

    @property
    def promoted(self) -> bool:
        return self.method != PromotionMethod.ORIGINAL

    @property
    def degraded(self) -> bool:
        return self.method == PromotionMethod.ORIGINAL


@dataclass
class PromotedAssetSet:
    """Final URLs per category, positionally aligned with the staged lists."""

    logo: str = ""
    services: list[str] = field(default_factory=list)
    products: list[str] = field(default_factory=list)
    staff: list[str] = field(default_factory=list)
    gallery: list[str] = field(default_factory=list)
    outcomes: list[AssetOutcome] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return any(o.degraded for o in self.outcomes)

    @property
    def failures(self) -> list[AssetOutcome]:
        return [o for o in self.outcomes if o.degraded]

    def urls(self, category: AssetCategory) -> list[str]:
        if category == AssetCategory.LOGO:
            return [self.logo] if self.logo else []
        return getattr(self, category.value)

    def url_at(self, category: AssetCategory, index: int) -> str:
        """URL at ``index`` or "" when fewer assets were staged."""
        urls = self.urls(category)
        return urls[index] if index < len(urls) else ""

    def _record(self, outcome: AssetOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.category == AssetCategory.LOGO:
            self.logo = outcome.url
        else:
            getattr(self, outcome.category.value).append(outcome.url)


class AssetPromoter:
    def __init__(self, object_store: ObjectStore) -> None:
        self._store = object_store

    async def promote(
        self,
        staging_key: str,
        tenant_identifier: str,
        assets: StagedAssetSet,
    ) -> PromotedAssetSet:
        validate_identifier(tenant_identifier)
        result = PromotedAssetSet()

        for category in AssetCategory:
            for index, url in enumerate(assets.urls(category)):
                outcome = await self._promote_one(tenant_identifier, category, index, url)
                result._record(outcome)

        moved = sum(1 for o in result.outcomes if o.promoted)
        logger.info(
            "Promoted %d/%d assets from %s to %s",
            moved, len(result.outcomes), staging_key, tenant_identifier,
        )
        if result.degraded:
            logger.warning(
                "%d assets of %s kept their staging URL", len(result.failures), tenant_identifier
            )
        return result

    def destination_key(
        self, tenant_identifier: str, category: AssetCategory, index: int, url: str
    ) -> str:
        """``{tenant}/{category}/{name}``, keeping the staged object's name."""
        source_key = self._store.extract_key(url)
        if source_key:
            name = source_key.rsplit("/", 1)[-1]
        else:
            name = f"{category.value}{index + 1}"
        return f"{tenant_identifier}/{category.value}/{name}"

    async def _promote_one(
        self,
        tenant_identifier: str,
        category: AssetCategory,
        index: int,
        url: str,
    ) -> AssetOutcome:
        destination = self.destination_key(tenant_identifier, category, index, url)
        source_key = self._store.extract_key(url)
        error: str | None = None

        def outcome(new_url: str, method: PromotionMethod) -> AssetOutcome:
            return AssetOutcome(
                category=category,
                index=index,
                original_url=url,
                url=new_url,
                method=method,
                error=error,
            )

        if source_key:
            try:
                return outcome(await self._store.rename(source_key, destination), PromotionMethod.MOVED)
            except ObjectNotFoundError:
                # Source gone: most likely moved by an earlier attempt
                pass
            except ExternalServiceError as exc:
                error = str(exc)
                logger.warning("Rename %s -> %s failed: %s", source_key, destination, exc)

        try:
            existing = await self._store.lookup(destination)
        except ExternalServiceError as exc:
            existing = None
            error = str(exc)
        if existing:
            return outcome(existing, PromotionMethod.EXISTING)

        try:
            return outcome(
                await self._store.upload_from_url(url, destination), PromotionMethod.REUPLOADED
            )
        except ExternalServiceError as exc:
            error = str(exc)
            logger.warning("Re-upload of %s to %s failed: %s", url, destination, exc)

        return outcome(url, PromotionMethod.ORIGINAL)
