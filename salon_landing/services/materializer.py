"""Tenant materialization: write a new salon's documents into the shared store.

Two phases. The descriptor, marker and configuration documents go in one
atomic batch; users, catalog and staff are added one document at a time
afterwards and may partially fail without undoing the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from salon_landing.core.documents import DocumentStore
from salon_landing.core.errors import ExternalServiceError
from salon_landing.models.base import utcnow_iso
from salon_landing.models.intake import DaySchedule, TenantProfile
from salon_landing.models.staging import AssetCategory
from salon_landing.services import layout
from salon_landing.services.assets import PromotedAssetSet
from salon_landing.services.identifiers import validate_identifier

logger = logging.getLogger(__name__)

MIN_STAFF = 6
CAROUSEL_SLOTS = 4
DURATION_OPTIONS = ("00:30", "01:00", "01:30", "02:00", "02:30", "03:00")

DEFAULT_PHONE = "+503 0000-0000"
DEFAULT_ADDRESS = "Salon address"
DEFAULT_DESCRIPTION = "Your trusted beauty salon"
DEFAULT_SLOGAN = "Relax while we make you beautiful"

DEFAULT_FEATURES = {
    "realtime_prebookings": True,
    "client_registration": True,
    "employee_management": True,
    "image_upload": True,
    "nail_design_generator": True,
    "online_booking": True,
    "product_sales": True,
    "report_generation": True,
    "service_booking": True,
}

PLACEHOLDER_SERVICE = {
    "name": "Haircut",
    "description": "Professional haircut",
    "short_description": "Haircut",
    "duration": "00:30",
    "price": 10,
}
PLACEHOLDER_PRODUCT = {
    "name": "Professional Shampoo",
    "description": "Professional shampoo for every hair type",
    "short_description": "Shampoo",
    "price": 15,
    "stock": 10,
    "min_stock": 5,
}


@dataclass
class TenantContact:
    """Who the tenant belongs to, as collected on the intake request."""

    business_name: str
    owner_name: str
    email: str
    phone: str = ""


@dataclass
class MaterializationResult:
    identifier: str
    admin_user_id: str | None = None
    services_created: int = 0
    products_created: int = 0
    staff_created: int = 0
    placeholder_staff: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return bool(self.failures)

    @property
    def catalog_created(self) -> int:
        return self.services_created + self.products_created


def _split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return "Administrator", "Main"
    return parts[0], " ".join(parts[1:]) or "Main"


def _hours(day: DaySchedule | None, default_start: str, default_end: str) -> dict[str, str]:
    if day is None:
        return {"opening": default_start, "closing": default_end}
    if not day.open:
        return {"opening": "Closed", "closing": "Closed"}
    return {"opening": day.start or default_start, "closing": day.end or default_end}


class TenantMaterializer:
    """Writes everything a brand-new tenant needs into the document store."""

    def __init__(self, store: DocumentStore, min_staff: int = MIN_STAFF) -> None:
        self._store = store
        self._min_staff = min_staff

    async def materialize(
        self,
        identifier: str,
        profile: TenantProfile,
        assets: PromotedAssetSet,
        *,
        contact: TenantContact,
        admin_secret_hash: str,
        request_id: Any = None,
    ) -> MaterializationResult:
        """Create the tenant.

        Raises ExternalServiceError when the initial batch fails; nothing of
        the tenant is visible in that case. Failures after the batch are
        collected on the result instead.
        """
        validate_identifier(identifier)
        result = MaterializationResult(identifier=identifier)
        now = utcnow_iso()

        logo = assets.logo or profile.logo_url
        gallery = assets.gallery or profile.gallery_urls

        batch = self._store.batch()
        batch.set(layout.directory_path(identifier), self._directory_doc(contact, now))
        batch.set(
            layout.marker_path(identifier),
            {
                "state": layout.MarkerState.MATERIALIZING.value,
                "request_id": str(request_id) if request_id is not None else None,
                "created_at": now,
                "updated_at": now,
            },
        )
        batch.set(self._doc(identifier, layout.CONFIG, "general"),
                  self._config_doc(identifier, profile, contact, logo))
        batch.set(self._doc(identifier, layout.DURATIONS, "options"), {
            "options": [
                {"id": f"duration_{n}", "time": value}
                for n, value in enumerate(DURATION_OPTIONS, start=1)
            ],
        })
        batch.set(self._doc(identifier, layout.TITLES, "main"), {
            "carousel": f"Welcome to {contact.business_name}",
            "staff": "Our team",
            "products": "Our products",
            "services": "Our services",
        })
        batch.set(self._doc(identifier, layout.FOOTER, "main"),
                  self._footer_doc(profile, contact, now))
        batch.set(self._doc(identifier, layout.IMAGES, "carousel"), {
            "updated_at": now,
            **{
                f"image{n}": gallery[n - 1] if n <= len(gallery) else ""
                for n in range(1, CAROUSEL_SLOTS + 1)
            },
        })
        await batch.commit()
        logger.info("Committed initial documents for tenant %s", identifier)

        # A retry after a partial failure starts the individual collections over
        for name in layout.INDIVIDUAL_COLLECTIONS:
            await self._store.delete_prefix(layout.tenant_collection(identifier, name))

        await self._create_admin(identifier, profile, contact, admin_secret_hash, now, result)
        await self._create_services(identifier, profile, assets, now, result)
        await self._create_products(identifier, profile, assets, now, result)
        await self._create_staff(identifier, profile, assets, now, result)

        state = (
            layout.MarkerState.INCOMPLETE if result.partial_failure else layout.MarkerState.READY
        )
        try:
            await self._store.update(layout.marker_path(identifier), {
                "state": state.value,
                "updated_at": utcnow_iso(),
                "staff": result.staff_created,
                "catalog": result.catalog_created,
                "failures": result.failures,
            })
        except ExternalServiceError as exc:
            result.failures.append(f"marker: {exc}")

        if result.partial_failure:
            logger.warning(
                "Tenant %s materialized with %d failures: %s",
                identifier, len(result.failures), "; ".join(result.failures),
            )
        else:
            logger.info(
                "Tenant %s ready (%d services, %d products, %d staff)",
                identifier, result.services_created, result.products_created, result.staff_created,
            )
        return result

    # ── Documents ─────────────────────────────────────────────

    @staticmethod
    def _doc(identifier: str, collection: str, doc_id: str) -> str:
        return layout.tenant_document(identifier, collection, doc_id)

    @staticmethod
    def _directory_doc(contact: TenantContact, now: str) -> dict[str, Any]:
        return {
            "display_name": contact.business_name,
            "state": "active",
            "created_at": now,
            "updated_at": now,
            "booking": {"staff_see_own_only": True},
            "features": dict(DEFAULT_FEATURES),
            "domains": [],
            "notifications": {
                "email_enabled": False,
                "email_quota": 1000,
                "email_used": 0,
                "plan_allows_email": True,
                "updated_at": now,
            },
        }

    @staticmethod
    def _config_doc(
        identifier: str, profile: TenantProfile, contact: TenantContact, logo: str
    ) -> dict[str, Any]:
        return {
            "name": contact.business_name,
            "phone": contact.phone or DEFAULT_PHONE,
            "email": contact.email or f"contact@{identifier}.com",
            "address": profile.address or DEFAULT_ADDRESS,
            "base_hours": {"opening": "05:00", "closing": "22:00", "slot_interval": 30},
            "branding": {
                "logo_url": logo,
                "palette_id": profile.palette_id,
                "custom_colors": profile.custom_colors,
                "custom_css": "",
            },
            "ui": {
                "max_staff_home": 6,
                "max_products_home": 6,
                "max_services_home": 6,
                "max_staff_booking": 6,
                "show_carousel": True,
                "show_staff": True,
                "show_products": True,
                "show_services": True,
                "show_footer": True,
            },
        }

    @staticmethod
    def _footer_doc(profile: TenantProfile, contact: TenantContact, now: str) -> dict[str, Any]:
        schedule = profile.schedule
        return {
            "updated_at": now,
            "rights": f"© {date.today().year} - All rights reserved",
            "description": profile.slogan or DEFAULT_DESCRIPTION,
            "slogan": profile.slogan or DEFAULT_SLOGAN,
            "name": contact.business_name,
            "address": profile.address or DEFAULT_ADDRESS,
            "email": contact.email,
            "phone": contact.phone,
            "whatsapp": profile.social.whatsapp or contact.phone,
            "hours": {
                "weekdays": _hours(schedule.get("monday"), "09:00", "17:00"),
                "saturday": _hours(schedule.get("saturday"), "09:00", "19:00"),
                "sunday": _hours(schedule.get("sunday"), "09:00", "15:00"),
            },
            "social": {
                "facebook": profile.social.facebook,
                "instagram": profile.social.instagram,
                "x": "",
                "tiktok": "",
                "youtube": "",
            },
            "location": profile.maps_url,
        }

    # ── Individually written collections ──────────────────────

    async def _add(
        self, identifier: str, collection: str, data: dict[str, Any], result: MaterializationResult
    ) -> str | None:
        try:
            return await self._store.add(layout.tenant_collection(identifier, collection), data)
        except ExternalServiceError as exc:
            result.failures.append(f"{collection}: {exc}")
            logger.warning("Writing %s for tenant %s failed: %s", collection, identifier, exc)
            return None

    async def _create_admin(
        self,
        identifier: str,
        profile: TenantProfile,
        contact: TenantContact,
        secret_hash: str,
        now: str,
        result: MaterializationResult,
    ) -> None:
        first_name, last_name = _split_name(contact.owner_name)
        result.admin_user_id = await self._add(identifier, layout.USERS, {
            "is_stylist": False,
            "alias": "admin",
            "first_name": first_name,
            "last_name": last_name,
            "email": contact.email,
            "phone": contact.phone,
            "role": "salon_admin",
            "address": profile.address,
            "created_at": now,
            "updated_at": now,
            "tenant": identifier,
            "password_hash": secret_hash,
            "must_change_password": True,
            "employee": {"commission": 0, "salary": 0, "start_date": now[:10]},
        }, result)

    async def _create_services(
        self,
        identifier: str,
        profile: TenantProfile,
        assets: PromotedAssetSet,
        now: str,
        result: MaterializationResult,
    ) -> None:
        drafts = [
            {
                "name": draft.name,
                "description": draft.description,
                "short_description": draft.name[:20],
                "duration": draft.duration,
                "price": draft.price if draft.price else PLACEHOLDER_SERVICE["price"],
                "active": draft.active,
                "url": assets.url_at(AssetCategory.SERVICES, i) or draft.image_url,
            }
            for i, draft in enumerate(profile.services)
        ] or [{**PLACEHOLDER_SERVICE, "active": True, "url": ""}]

        for data in drafts:
            doc = {
                **data,
                "category": "general",
                "bookable": True,
                "is_new": True,
                "on_sale": False,
                "sale_price": 0,
                "display_order": 0,
                "created_at": now,
                "updated_at": now,
            }
            if await self._add(identifier, layout.SERVICES, doc, result):
                result.services_created += 1

    async def _create_products(
        self,
        identifier: str,
        profile: TenantProfile,
        assets: PromotedAssetSet,
        now: str,
        result: MaterializationResult,
    ) -> None:
        drafts = [
            {
                "name": draft.name,
                "description": draft.description,
                "short_description": draft.name[:20],
                "brand": draft.brand,
                "sku": draft.sku,
                "price": draft.price if draft.price else PLACEHOLDER_PRODUCT["price"],
                "stock": draft.stock,
                "min_stock": draft.min_stock,
                "active": draft.active,
                "url": assets.url_at(AssetCategory.PRODUCTS, i) or draft.image_url,
            }
            for i, draft in enumerate(profile.products)
        ] or [{**PLACEHOLDER_PRODUCT, "brand": "", "sku": "", "active": True, "url": ""}]

        for data in drafts:
            doc = {
                **data,
                "category": "care",
                "for_sale": True,
                "is_new": True,
                "on_sale": False,
                "sale_price": 0,
                "display_order": 0,
                "tags": [],
                "created_at": now,
                "updated_at": now,
            }
            if await self._add(identifier, layout.PRODUCTS, doc, result):
                result.products_created += 1

    async def _create_staff(
        self,
        identifier: str,
        profile: TenantProfile,
        assets: PromotedAssetSet,
        now: str,
        result: MaterializationResult,
    ) -> None:
        def member(n: int, **overrides: Any) -> dict[str, Any]:
            return {
                "name": f"Stylist {n}",
                "relation": f"employee{n}",
                "is_stylist": True,
                "active": True,
                "user_id": "",
                "specialty": "General",
                "url": "",
                "email": "",
                "created_at": now,
                **overrides,
            }

        for i, draft in enumerate(profile.staff):
            n = i + 1
            doc = member(
                n,
                name=draft.name or f"Stylist {n}",
                active=draft.active,
                specialty=draft.specialty or "General",
                url=assets.url_at(AssetCategory.STAFF, i) or draft.photo_url,
                email=draft.email,
            )
            if await self._add(identifier, layout.STAFF, doc, result):
                result.staff_created += 1

        # Pad the roster so the booking page always has MIN_STAFF columns
        while result.staff_created < self._min_staff:
            n = result.staff_created + 1
            if not await self._add(identifier, layout.STAFF, member(n), result):
                break
            result.staff_created += 1
            result.placeholder_staff += 1
