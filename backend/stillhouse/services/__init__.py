"""Operation engine, ledger queries and the container kind catalog."""

from stillhouse.services.container_kinds import ContainerKindService
from stillhouse.services.engine import OperationEngine
from stillhouse.services.ledger import LedgerService

__all__ = ["ContainerKindService", "LedgerService", "OperationEngine"]
