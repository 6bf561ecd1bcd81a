"""
Payment allocation endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import LedgerSystem, get_ledger_system, get_actor, to_http_error
from .schemas import (
    CreateAllocationsRequest, UpdateAllocationRequest, AllocationResponse, parse_amount
)
from ..allocations import AllocationItem
from ..context import ActorContext
from ..errors import LedgerError


router = APIRouter()


@router.get("")
async def list_allocations(
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """List allocations on the current user's entries"""
    views = system.allocation_manager.list_for_actor(actor)
    return {"allocations": [AllocationResponse.from_view(view) for view in views]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_allocations(
    request: CreateAllocationsRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Split an entry into allocations"""
    try:
        views = system.allocation_manager.create_allocations(
            request.entry_id,
            [
                AllocationItem(
                    person_id=item.person_id,
                    amount=parse_amount(item.amount),
                    description=item.description,
                    notes=item.notes
                )
                for item in request.allocations
            ],
            actor=actor
        )
        return {"allocations": [AllocationResponse.from_view(view) for view in views]}
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/entry/{entry_id}")
async def list_entry_allocations(
    entry_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """List allocations of an entry"""
    try:
        views = system.allocation_manager.list_for_entry(entry_id)
        return {"allocations": [AllocationResponse.from_view(view) for view in views]}
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/{allocation_id}", response_model=AllocationResponse)
async def get_allocation(
    allocation_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    actor: ActorContext = Depends(get_actor)
):
    """Get an allocation by id"""
    try:
        return AllocationResponse.from_view(system.allocation_manager.get_allocation(allocation_id, actor))
    except LedgerError as e:
        raise to_http_error(e)


@router.put("/{allocation_id}", response_model=AllocationResponse)
async def update_allocation(
    allocation_id: str,
    request: UpdateAllocationRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Edit an allocation"""
    try:
        view = system.allocation_manager.update_allocation(
            allocation_id,
            person_id=request.person_id,
            description=request.description,
            amount=parse_amount(request.amount),
            notes=request.notes
        )
        return AllocationResponse.from_view(view)
    except LedgerError as e:
        raise to_http_error(e)


@router.delete("/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allocation(
    allocation_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Delete an allocation"""
    try:
        system.allocation_manager.delete_allocation(allocation_id)
    except LedgerError as e:
        raise to_http_error(e)
