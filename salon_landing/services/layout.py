"""Document-store layout of a provisioned tenant (schema-in-code).

The store creates collections on first write, so these helpers are the
single source of truth for where tenant data lives.
"""

from enum import StrEnum

# Public descriptor + feature flags, one document per tenant
TENANT_DIRECTORY = "tenant_directory"
# Root / provisioning marker, parent of every tenant-scoped collection
TENANTS = "tenants"

# Tenant-scoped collections
CONFIG = "config"
DURATIONS = "durations"
TITLES = "titles"
FOOTER = "footer"
IMAGES = "images"
USERS = "users"
SERVICES = "services"
PRODUCTS = "products"
STAFF = "staff"

# Collections written one document at a time after the initial batch
INDIVIDUAL_COLLECTIONS = (USERS, SERVICES, PRODUCTS, STAFF)


class MarkerState(StrEnum):
    """Lifecycle of ``tenants/{id}``. Readers trust a tenant only when READY."""

    RESERVED = "reserved"
    MATERIALIZING = "materializing"
    READY = "ready"
    INCOMPLETE = "incomplete"
    STALLED = "stalled"


IN_FLIGHT_STATES = (MarkerState.RESERVED, MarkerState.MATERIALIZING)


def directory_path(identifier: str) -> str:
    return f"{TENANT_DIRECTORY}/{identifier}"


def marker_path(identifier: str) -> str:
    return f"{TENANTS}/{identifier}"


def tenant_collection(identifier: str, name: str) -> str:
    return f"{TENANTS}/{identifier}/{name}"


def tenant_document(identifier: str, collection: str, doc_id: str) -> str:
    return f"{TENANTS}/{identifier}/{collection}/{doc_id}"
