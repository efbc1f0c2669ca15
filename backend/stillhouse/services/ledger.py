"""
Stillhouse Ledger - Ledger Queries

Read side of the transaction ledger: filtered listing, summary
statistics and per-container reconciliation.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from stillhouse.conversion import weight_to_gallons
from stillhouse.core.config import settings
from stillhouse.core.types import ZERO
from stillhouse.models.operations import parse_request
from stillhouse.models.transaction import (
    ReconciliationReport,
    Transaction,
    TransactionFilter,
    TransactionSummary,
)
from stillhouse.repositories.base import UnitOfWork

logger = logging.getLogger(__name__)


class LedgerService:
    """Read-only access to the ledger. Never writes."""

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        tolerance: Optional[Decimal] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.tolerance = tolerance if tolerance is not None else settings.RECONCILIATION_TOLERANCE

    async def list_transactions(self, owner_id: uuid.UUID, **filters: Any) -> list[Transaction]:
        """Newest first. Filters: transaction_type, container_id, start_date, end_date, limit, offset."""
        query = parse_request(TransactionFilter, **filters)
        async with self._uow_factory() as uow:
            return await uow.ledger.query(owner_id, query)

    async def get_transaction(self, owner_id: uuid.UUID, transaction_id: uuid.UUID) -> Transaction:
        async with self._uow_factory() as uow:
            return await uow.ledger.get(transaction_id, owner_id)

    async def summarize(
        self,
        owner_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TransactionSummary:
        async with self._uow_factory() as uow:
            return await uow.ledger.summarize(owner_id, start_date, end_date)

    async def reconcile(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> ReconciliationReport:
        """
        Compare the sum of a container's ledger proof-gallon deltas with the
        proof gallons its current weight and proof imply.

        Bottling loss and gain are measured, not derived, so a variance
        after bottling is expected and only reported.
        """
        async with self._uow_factory() as uow:
            container = await uow.containers.get(container_id, owner_id)
            history = await uow.ledger.for_container(owner_id, container_id)

        ledger_pg = sum((t.proof_gallons for t in history), ZERO)
        container_pg = weight_to_gallons(container.working_proof, container.net_weight).proof_gallons
        variance = ledger_pg - container_pg
        reconciled = abs(variance) <= self.tolerance

        if not reconciled:
            logger.warning(
                f"Container {container_id} off by {variance:.4f} PG "
                f"(ledger {ledger_pg:.4f}, container {container_pg:.4f})"
            )
        return ReconciliationReport(
            container_id=container_id,
            transaction_count=len(history),
            ledger_proof_gallons=ledger_pg,
            container_proof_gallons=container_pg,
            variance=variance,
            tolerance=self.tolerance,
            reconciled=reconciled,
        )
