"""
Stillhouse Ledger - Container Kind Catalog

Vessel templates per owner. A starter catalog is seeded the first time
an owner lists kinds and has none.
"""

import logging
import uuid
from typing import Any, Callable, Optional

from pydantic import BaseModel

from stillhouse.core.types import NonNegativeQuantity
from stillhouse.models.container import ContainerKind, ContainerType
from stillhouse.models.operations import parse_request
from stillhouse.repositories.base import UnitOfWork

logger = logging.getLogger(__name__)


DEFAULT_CONTAINER_KINDS = [
    {"name": "53 Gallon Barrel", "container_type": ContainerType.WOODEN_BARREL,
     "capacity_gallons": "53", "tare_weight": "120"},
    {"name": "30 Gallon Barrel", "container_type": ContainerType.WOODEN_BARREL,
     "capacity_gallons": "30", "tare_weight": "75"},
    {"name": "15 Gallon Barrel", "container_type": ContainerType.WOODEN_BARREL,
     "capacity_gallons": "15", "tare_weight": "45"},
    {"name": "55 Gallon Drum", "container_type": ContainerType.METAL_DRUM,
     "capacity_gallons": "55", "tare_weight": "37"},
    {"name": "275 Gallon Tote", "container_type": ContainerType.TOTE,
     "capacity_gallons": "275", "tare_weight": "140"},
    {"name": "5 Gallon Tote", "container_type": ContainerType.FIVE_GALLON_TOTE,
     "capacity_gallons": "5", "tare_weight": "2"},
    {"name": "500 Gallon Tank", "container_type": ContainerType.SQUARE_TANK,
     "capacity_gallons": "500", "tare_weight": "650"},
]


class CreateKindRequest(BaseModel):
    name: str
    container_type: ContainerType
    capacity_gallons: NonNegativeQuantity
    tare_weight: NonNegativeQuantity
    description: Optional[str] = None


class ContainerKindService:

    def __init__(self, uow_factory: Callable[[], UnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def list_kinds(self, owner_id: uuid.UUID) -> list[ContainerKind]:
        async with self._uow_factory() as uow:
            kinds = await uow.kinds.list(owner_id)
            if kinds:
                return kinds

            for template in DEFAULT_CONTAINER_KINDS:
                await uow.kinds.create(ContainerKind(owner_id=owner_id, **template))
            await uow.commit()
            logger.info(f"Seeded {len(DEFAULT_CONTAINER_KINDS)} default container kinds for owner {owner_id}")

        async with self._uow_factory() as uow:
            return await uow.kinds.list(owner_id)

    async def get_kind(self, owner_id: uuid.UUID, kind_id: uuid.UUID) -> ContainerKind:
        async with self._uow_factory() as uow:
            return await uow.kinds.get(kind_id, owner_id)

    async def create_kind(self, owner_id: uuid.UUID, **params: Any) -> ContainerKind:
        request = parse_request(CreateKindRequest, **params)
        async with self._uow_factory() as uow:
            kind = await uow.kinds.create(ContainerKind(owner_id=owner_id, **request.model_dump()))
            await uow.commit()
        logger.info(f"Created container kind {kind.id} '{kind.name}' ({kind.capacity_gallons} WG)")
        return kind
