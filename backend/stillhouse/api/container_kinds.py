"""Container kind catalog endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from stillhouse.api.errors import http_error
from stillhouse.core.errors import LedgerError
from stillhouse.dependencies import get_kind_service, get_owner_id
from stillhouse.models.container import ContainerKind
from stillhouse.services import ContainerKindService
from stillhouse.services.container_kinds import CreateKindRequest

router = APIRouter(prefix="/container-kinds", tags=["Container Kinds"])


@router.get("", response_model=list[ContainerKind])
async def list_kinds(
    owner_id: UUID = Depends(get_owner_id),
    kinds: ContainerKindService = Depends(get_kind_service),
):
    """List kinds, seeding the default catalog on first use."""
    return await kinds.list_kinds(owner_id)


@router.post("", response_model=ContainerKind, status_code=status.HTTP_201_CREATED)
async def create_kind(
    payload: CreateKindRequest,
    owner_id: UUID = Depends(get_owner_id),
    kinds: ContainerKindService = Depends(get_kind_service),
):
    try:
        return await kinds.create_kind(owner_id, **payload.model_dump())
    except LedgerError as e:
        raise http_error(e)


@router.get("/{kind_id}", response_model=ContainerKind)
async def get_kind(
    kind_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    kinds: ContainerKindService = Depends(get_kind_service),
):
    try:
        return await kinds.get_kind(owner_id, kind_id)
    except LedgerError as e:
        raise http_error(e)
