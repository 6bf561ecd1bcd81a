"""
Payment endpoints
"""

from fastapi import APIRouter, Depends, Response, status

from .dependencies import LedgerSystem, get_ledger_system, get_actor, to_http_error
from .schemas import CreatePaymentRequest, UpdatePaymentRequest, PaymentResponse, parse_date, parse_amount
from ..context import ActorContext
from ..errors import LedgerError
from ..payments import NewPayment


router = APIRouter()


@router.get("")
async def list_payments(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """List payments on the current user's entries"""
    payments = system.payment_manager.list_for_actor(actor)
    return {"payments": [PaymentResponse.from_view(system.payment_manager.describe(p)) for p in payments]}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PaymentResponse)
async def create_payment(
    request: CreatePaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Record a payment against an entry"""
    try:
        payment = system.payment_manager.record_payment(
            NewPayment(
                entry_id=request.entry_id,
                payee_person_id=request.payee_person_id,
                payment_amount=parse_amount(request.payment_amount),
                payment_date=parse_date(request.payment_date),
                notes=request.notes,
                allocation_id=request.allocation_id
            ),
            actor=actor,
            proof=request.proof.to_upload() if request.proof else None
        )
        return PaymentResponse.from_view(system.payment_manager.describe(payment))
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/total-paid-penalties")
async def get_total_paid_penalties(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Total penalties settled on the current user's installment entries"""
    total = system.installment_manager.total_paid_penalties(actor)
    return {"total_paid_penalties": str(total)}


@router.get("/entry/{entry_id}")
async def list_entry_payments(
    entry_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List payments of an entry"""
    try:
        payments = system.payment_manager.list_for_entry(entry_id)
        return {"payments": [PaymentResponse.from_view(system.payment_manager.describe(p)) for p in payments]}
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Get a payment by id"""
    try:
        payment = system.payment_manager.get_payment(payment_id, actor)
        return PaymentResponse.from_view(system.payment_manager.describe(payment))
    except LedgerError as e:
        raise to_http_error(e)


@router.put("/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    payment_id: str,
    request: UpdatePaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Edit a payment"""
    try:
        payment = system.payment_manager.update_payment(
            payment_id,
            actor,
            payment_amount=parse_amount(request.payment_amount),
            payment_date=parse_date(request.payment_date),
            payee_person_id=request.payee_person_id,
            notes=request.notes,
            proof=request.proof.to_upload() if request.proof else None
        )
        return PaymentResponse.from_view(system.payment_manager.describe(payment))
    except LedgerError as e:
        raise to_http_error(e)


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_payment(
    payment_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Delete a payment"""
    try:
        system.payment_manager.delete_payment(payment_id, actor)
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/{payment_id}/proof")
async def get_payment_proof(
    payment_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Download a payment's proof image"""
    try:
        data, content_type = system.payment_manager.get_proof_with_info(payment_id, actor)
    except LedgerError as e:
        raise to_http_error(e)
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": f'inline; filename="payment-proof-{payment_id}"'}
    )
