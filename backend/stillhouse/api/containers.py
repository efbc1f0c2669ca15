"""Container lifecycle and physical operation endpoints.

Quantities travel as strings ("100.5"); JSON floats are rejected.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, status

from stillhouse.api.errors import http_error
from stillhouse.core.errors import LedgerError
from stillhouse.dependencies import get_engine, get_owner_id
from stillhouse.models.container import Container
from stillhouse.models.operations import (
    AdjustRequest,
    BottleRequest,
    ChangeAccountRequest,
    ContainerChanges,
    CreateContainerRequest,
    DeleteResult,
    EditResult,
    OperationResult,
    ProofDownRequest,
    TransferRequest,
    TransferResult,
)
from stillhouse.services import OperationEngine

router = APIRouter(prefix="/containers", tags=["Containers"])


# ============ Lifecycle Endpoints ============

@router.post("", response_model=OperationResult, status_code=status.HTTP_201_CREATED)
async def create_container(
    payload: CreateContainerRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    """Create a container and its CREATE ledger entry."""
    try:
        return await engine.create_container(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.get("", response_model=list[Container])
async def list_containers(
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    return await engine.list_containers(owner_id)


@router.get("/{container_id}", response_model=Container)
async def get_container(
    container_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.get_container(owner_id, container_id)
    except LedgerError as e:
        raise http_error(e)


@router.patch("/{container_id}", response_model=EditResult)
async def edit_container(
    container_id: UUID,
    payload: ContainerChanges,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    """Apply field changes; tracked changes are audited in the ledger."""
    try:
        return await engine.edit_container(owner_id, container_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.delete("/{container_id}", response_model=DeleteResult)
async def delete_container(
    container_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.delete_container(owner_id, container_id)
    except LedgerError as e:
        raise http_error(e)


# ============ Operation Endpoints ============

@router.post("/transfer", response_model=TransferResult)
async def transfer_spirit(
    payload: TransferRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.transfer_spirit(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.post("/proof-down", response_model=OperationResult)
async def proof_down_spirit(
    payload: ProofDownRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.proof_down_spirit(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.post("/adjust", response_model=OperationResult)
async def adjust_contents(
    payload: AdjustRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.adjust_contents(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.post("/bottle", response_model=OperationResult)
async def bottle_spirit(
    payload: BottleRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.bottle_spirit(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)


@router.post("/change-account", response_model=OperationResult)
async def change_account(
    payload: ChangeAccountRequest,
    owner_id: UUID = Depends(get_owner_id),
    engine: OperationEngine = Depends(get_engine),
):
    try:
        return await engine.change_account(owner_id, **payload.model_dump(exclude_unset=True))
    except LedgerError as e:
        raise http_error(e)
