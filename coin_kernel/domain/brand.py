"""
Brand reference (``coin_kernel.domain.brand``).

Brands are owned by the catalog, not the ledger.  The kernel reads a
snapshot at validation time and never writes back.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID


@dataclass(frozen=True)
class BrandSnapshot:
    """Read-only view of a partner brand's coin terms."""

    id: UUID
    is_active: bool
    earning_percentage: Decimal | None
    min_redemption_amount: Decimal
    max_redemption_amount: Decimal
    name: str = ""


class BrandDirectory(Protocol):
    """Lookup of brand snapshots by id."""

    def get(self, brand_id: UUID) -> BrandSnapshot | None: ...


class InMemoryBrandDirectory:
    """Brand directory backed by a dict, for embedding and tests."""

    def __init__(self, brands: Iterable[BrandSnapshot] = ()) -> None:
        self._brands: dict[UUID, BrandSnapshot] = {b.id: b for b in brands}

    def add(self, brand: BrandSnapshot) -> None:
        self._brands[brand.id] = brand

    def get(self, brand_id: UUID) -> BrandSnapshot | None:
        return self._brands.get(brand_id)
