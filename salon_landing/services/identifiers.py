"""Tenant identifier allocation.

Identifiers are the user-facing salon slugs (``bellaspa``, ``bellaspa1``…)
shared by every tenant in the document store and the object store.
"""

from __future__ import annotations

import logging
import re
import unicodedata
import uuid
from collections.abc import Iterator

from salon_landing.core.documents import DocumentStore
from salon_landing.core.errors import (
    AllocationExhaustedError,
    DocumentExistsError,
    InvalidBaseNameError,
    InvalidIdentifierError,
)
from salon_landing.models.base import utcnow_iso
from salon_landing.services.layout import MarkerState, directory_path, marker_path

logger = logging.getLogger(__name__)

MIN_IDENTIFIER_LENGTH = 3
MAX_IDENTIFIER_LENGTH = 30
# Suffixed candidates tried after the bare base
MAX_ATTEMPTS = 100

IDENTIFIER_PATTERN = re.compile(
    rf"^[a-z0-9]{{{MIN_IDENTIFIER_LENGTH},{MAX_IDENTIFIER_LENGTH}}}$"
)


def strip_accents(text: str) -> str:
    """Lower-case ASCII rendition of ``text`` ("Café Beauté" -> "cafe beaute")."""
    normalized = unicodedata.normalize("NFKD", text)
    return normalized.encode("ascii", "ignore").decode("ascii").lower()


def normalize_base_name(name: str) -> str:
    """Turn a business name into an identifier base.

    Examples:
        "Bella Spa" -> "bellaspa"
        "Karla's Salón" -> "karlassalon"
    """
    if not isinstance(name, str):
        raise InvalidBaseNameError("Business name is required")
    base = re.sub(r"[^a-z0-9]", "", strip_accents(name))[:MAX_IDENTIFIER_LENGTH]
    if len(base) < MIN_IDENTIFIER_LENGTH:
        raise InvalidBaseNameError(
            f"'{name}' must contain at least {MIN_IDENTIFIER_LENGTH} letters or digits"
        )
    return base


def validate_identifier(identifier: str) -> str:
    if not isinstance(identifier, str) or not IDENTIFIER_PATTERN.match(identifier):
        raise InvalidIdentifierError(f"Invalid tenant identifier '{identifier}'")
    return identifier


def with_suffix(base: str, n: int, max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """``base`` + ``n``, shortening the base so the result fits ``max_length``."""
    suffix = str(n)
    return f"{base[: max_length - len(suffix)]}{suffix}"


def candidate_names(
    base: str,
    max_attempts: int = MAX_ATTEMPTS,
    max_length: int = MAX_IDENTIFIER_LENGTH,
) -> Iterator[str]:
    """``base``, ``base1``, ``base2`` … ``base{max_attempts}``."""
    yield base
    for n in range(1, max_attempts + 1):
        yield with_suffix(base, n, max_length)


class IdentifierAllocator:
    """Finds a free identifier in the tenant namespace.

    ``allocate`` is a read-only check: the name it returns is free at the time of
    the check only. ``reserve`` claims the name by creating the tenant marker
    with create-if-absent, so two concurrent callers can never both win the
    same candidate.
    """

    def __init__(self, store: DocumentStore, max_attempts: int = MAX_ATTEMPTS) -> None:
        self._store = store
        self._max_attempts = max_attempts

    async def is_taken(self, identifier: str) -> bool:
        if await self._store.exists(marker_path(identifier)):
            return True
        return await self._store.exists(directory_path(identifier))

    async def allocate(self, base_name: str) -> str:
        base = normalize_base_name(base_name)
        for candidate in candidate_names(base, self._max_attempts):
            if not await self.is_taken(candidate):
                return candidate
        raise AllocationExhaustedError(base, self._max_attempts + 1)

    async def reserve(self, base_name: str, request_id: uuid.UUID | str) -> str:
        base = normalize_base_name(base_name)
        for candidate in candidate_names(base, self._max_attempts):
            # Orphaned directory entries without a marker still count as taken
            if await self._store.exists(directory_path(candidate)):
                continue
            try:
                await self._store.create(
                    marker_path(candidate),
                    {
                        "state": MarkerState.RESERVED.value,
                        "request_id": str(request_id),
                        "reserved_at": utcnow_iso(),
                    },
                )
            except DocumentExistsError:
                continue
            logger.info("Reserved tenant identifier %s for request %s", candidate, request_id)
            return candidate
        raise AllocationExhaustedError(base, self._max_attempts + 1)

    async def owned_reservation(self, identifier: str, request_id: uuid.UUID | str) -> bool:
        """True when the marker of ``identifier`` was created for ``request_id``."""
        marker = await self._store.get(marker_path(identifier))
        if marker is None:
            return False
        return marker.get("request_id") == str(request_id)
