"""
Entry endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import LedgerSystem, get_ledger_system, get_actor, to_http_error
from .schemas import CreateEntryRequest, UpdateEntryRequest, EntryResponse, parse_date, parse_amount
from ..context import ActorContext
from ..entries import NewEntry
from ..errors import LedgerError


router = APIRouter()


@router.get("")
async def list_entries(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """List the entries the current user is a party to"""
    entries = system.entry_manager.list_for_actor(actor)
    return {"entries": [EntryResponse.from_view(system.entry_manager.describe(entry)) for entry in entries]}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=EntryResponse)
async def create_entry(
    request: CreateEntryRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Create an entry, with its installment plan when applicable"""
    try:
        entry = system.entry_manager.create_entry(
            NewEntry(
                entry_name=request.entry_name,
                transaction_kind=request.transaction_type,
                amount_borrowed=parse_amount(request.amount_borrowed),
                lender_person_id=request.lender_person_id,
                borrower_person_id=request.borrower_person_id,
                borrower_group_id=request.borrower_group_id,
                description=request.description,
                date_borrowed=parse_date(request.date_borrowed),
                payment_method=request.payment_method,
                notes=request.notes,
                payment_notes=request.payment_notes,
                installment_start_date=parse_date(request.installment_start_date),
                payment_frequency=request.payment_frequency,
                payment_frequency_day=request.payment_frequency_day,
                payment_terms=request.payment_terms,
                plan_notes=request.plan_notes
            ),
            actor=actor,
            proof=request.proof.to_upload() if request.proof else None
        )
        return EntryResponse.from_view(system.entry_manager.describe(entry))
    except LedgerError as e:
        raise to_http_error(e)


@router.post("/auto-complete")
async def auto_complete_entries(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Recompute balances of the current user's unpaid entries"""
    completed = system.entry_manager.auto_complete_entries(actor)
    return {"completed_count": completed}


@router.get("/{entry_id}", response_model=EntryResponse)
async def get_entry(
    entry_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get an entry by id"""
    try:
        entry = system.entry_manager.get_entry(entry_id)
        return EntryResponse.from_view(system.entry_manager.describe(entry))
    except LedgerError as e:
        raise to_http_error(e)


@router.put("/{entry_id}", response_model=EntryResponse)
async def update_entry(
    entry_id: str,
    request: UpdateEntryRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Edit an entry's descriptive fields"""
    try:
        entry = system.entry_manager.update_entry(
            entry_id,
            actor,
            entry_name=request.entry_name,
            description=request.description,
            date_borrowed=parse_date(request.date_borrowed),
            notes=request.notes,
            payment_notes=request.payment_notes
        )
        return EntryResponse.from_view(system.entry_manager.describe(entry))
    except LedgerError as e:
        raise to_http_error(e)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Delete an entry and everything it owns"""
    try:
        system.entry_manager.delete_entry(entry_id, actor)
    except LedgerError as e:
        raise to_http_error(e)


@router.post("/{entry_id}/complete", response_model=EntryResponse)
async def complete_entry(
    entry_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Mark an entry fully paid"""
    try:
        entry = system.entry_manager.complete_entry(entry_id, actor)
        return EntryResponse.from_view(system.entry_manager.describe(entry))
    except LedgerError as e:
        raise to_http_error(e)
