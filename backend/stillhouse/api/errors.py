from fastapi import HTTPException

from stillhouse.core.errors import LedgerError


def http_error(e: LedgerError) -> HTTPException:
    """Map a typed ledger error to its registered HTTP status."""
    return HTTPException(status_code=e.info.http_status, detail=e.to_dict())
