"""
Installment term endpoints
"""

from fastapi import APIRouter, Depends

from .dependencies import LedgerSystem, get_ledger_system, get_actor, to_http_error
from .schemas import TermModel, UpdateTermStatusRequest
from ..context import ActorContext
from ..errors import LedgerError


router = APIRouter()


@router.post("/terms/{term_id}/skip", response_model=TermModel)
async def skip_term(
    term_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Skip a term and charge the late fee"""
    try:
        return TermModel.from_term(system.installment_manager.skip_term(term_id, actor))
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/terms/{term_id}/skip-penalty")
async def get_skip_penalty(
    term_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Preview the penalty of skipping a term"""
    try:
        return {"penalty": str(system.installment_manager.preview_skip_penalty(term_id))}
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/terms/{term_id}/delinquent-late-fee")
async def get_delinquent_late_fee(
    term_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Preview the late fee of paying a delinquent term"""
    try:
        return {"late_fee": str(system.installment_manager.preview_delinquent_late_fee(term_id))}
    except LedgerError as e:
        raise to_http_error(e)


@router.put("/terms/{term_id}/status", response_model=TermModel)
async def update_term_status(
    term_id: str,
    request: UpdateTermStatusRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Set a term's status"""
    try:
        return TermModel.from_term(system.installment_manager.update_term_status(term_id, request.status, actor))
    except LedgerError as e:
        raise to_http_error(e)


@router.post("/update-delinquent")
async def update_delinquent_terms(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Mark lapsed terms of the current user's entries delinquent"""
    marked = system.installment_manager.sweep_delinquent_terms(actor)
    return {"terms_marked_delinquent": marked}
