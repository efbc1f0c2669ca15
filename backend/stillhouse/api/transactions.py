"""Ledger query endpoints. The ledger is read-only over HTTP."""
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from stillhouse.api.errors import http_error
from stillhouse.core.errors import LedgerError
from stillhouse.dependencies import get_ledger_service, get_owner_id
from stillhouse.models.transaction import (
    ReconciliationReport,
    Transaction,
    TransactionSummary,
    TransactionType,
)
from stillhouse.services import LedgerService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", response_model=list[Transaction])
async def list_transactions(
    transaction_type: Optional[TransactionType] = None,
    container_id: Optional[UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    owner_id: UUID = Depends(get_owner_id),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Ledger entries, newest first."""
    try:
        return await ledger.list_transactions(
            owner_id,
            transaction_type=transaction_type,
            container_id=container_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except LedgerError as e:
        raise http_error(e)


@router.get("/summary", response_model=TransactionSummary)
async def transaction_summary(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    owner_id: UUID = Depends(get_owner_id),
    ledger: LedgerService = Depends(get_ledger_service),
):
    """Counts per type, signed totals and the ten most recent entries."""
    return await ledger.summarize(owner_id, start_date, end_date)


@router.get("/reconcile/{container_id}", response_model=ReconciliationReport)
async def reconcile_container(
    container_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    ledger: LedgerService = Depends(get_ledger_service),
):
    try:
        return await ledger.reconcile(owner_id, container_id)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    ledger: LedgerService = Depends(get_ledger_service),
):
    try:
        return await ledger.get_transaction(owner_id, transaction_id)
    except LedgerError as e:
        raise http_error(e)
