"""Domain models: containers, ledger entries and operation structs."""

from stillhouse.models.container import (
    OPERATOR_STATUSES,
    AccountType,
    Container,
    ContainerKind,
    ContainerStatus,
    ContainerType,
    derive_status,
)
from stillhouse.models.operations import (
    TRACKED_FIELDS,
    AdjustMethod,
    AdjustRequest,
    BottleRequest,
    ChangeAccountRequest,
    ContainerChanges,
    CreateContainerRequest,
    DeleteResult,
    EditResult,
    OperationResult,
    ProofDownRequest,
    RemainderAction,
    TransferRequest,
    TransferResult,
    parse_request,
)
from stillhouse.models.transaction import (
    ReconciliationReport,
    Transaction,
    TransactionFilter,
    TransactionSummary,
    TransactionType,
    TransactionTypeCount,
)

__all__ = [
    "OPERATOR_STATUSES",
    "AccountType",
    "Container",
    "ContainerKind",
    "ContainerStatus",
    "ContainerType",
    "derive_status",
    "TRACKED_FIELDS",
    "AdjustMethod",
    "AdjustRequest",
    "BottleRequest",
    "ChangeAccountRequest",
    "ContainerChanges",
    "CreateContainerRequest",
    "DeleteResult",
    "EditResult",
    "OperationResult",
    "ProofDownRequest",
    "RemainderAction",
    "TransferRequest",
    "TransferResult",
    "parse_request",
    "ReconciliationReport",
    "Transaction",
    "TransactionFilter",
    "TransactionSummary",
    "TransactionType",
    "TransactionTypeCount",
]
