"""
Shared API dependencies: the ledger system and the acting person
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..context import ActorContext
from ..errors import LedgerError, NotFoundError
from ..system import LedgerSystem


# Global ledger system instance, created on first use
ledger_system: Optional[LedgerSystem] = None


def get_ledger_system() -> LedgerSystem:
    global ledger_system
    if ledger_system is None:
        ledger_system = LedgerSystem()
    return ledger_system


def get_actor(
    x_selected_user_name: Optional[str] = Header(None),
    system: LedgerSystem = Depends(get_ledger_system)
) -> ActorContext:
    """Actor named by the X-Selected-User-Name header, or the default actor"""
    return system.directory.resolve_actor(x_selected_user_name)


def to_http_error(error: LedgerError) -> HTTPException:
    """Not found and not visible both map to 404; every other ledger error is a 400"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
