"""
People and group endpoints
"""

from fastapi import APIRouter, HTTPException, Depends, status

from .dependencies import LedgerSystem, get_ledger_system, to_http_error
from .schemas import CreatePersonRequest, CreateGroupRequest
from ..errors import LedgerError


router = APIRouter()


@router.post("/people", status_code=status.HTTP_201_CREATED)
async def create_person(
    request: CreatePersonRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Register a person"""
    try:
        person = system.directory.create_person(request.full_name)
        return {"person_id": person.id, "full_name": person.full_name}
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/people")
async def list_people(system: LedgerSystem = Depends(get_ledger_system)):
    """List people"""
    return {
        "people": [
            {"person_id": person.id, "full_name": person.full_name}
            for person in system.directory.list_people()
        ]
    }


@router.post("/groups", status_code=status.HTTP_201_CREATED)
async def create_group(
    request: CreateGroupRequest,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Create a group with its members"""
    try:
        group = system.directory.create_group(request.group_name, request.member_ids, request.description)
        return {
            "group_id": group.id,
            "group_name": group.group_name,
            "member_ids": system.directory.member_ids(group.id)
        }
    except LedgerError as e:
        raise to_http_error(e)


@router.get("/groups/{group_id}")
async def get_group(
    group_id: str,
    system: LedgerSystem = Depends(get_ledger_system)
):
    """Get a group and its members"""
    group = system.directory.get_group(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return {
        "group_id": group.id,
        "group_name": group.group_name,
        "description": group.description,
        "member_ids": system.directory.member_ids(group.id)
    }
