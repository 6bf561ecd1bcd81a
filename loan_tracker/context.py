"""
Actor Context Module

The current actor is passed explicitly into every operation that scopes or
authorizes by identity; nothing here reads request or thread-local state.
"""

from dataclasses import dataclass
from typing import Iterable

from .models import LedgerEntry


@dataclass(frozen=True)
class ActorContext:
    """The person on whose behalf an operation runs"""
    person_id: str
    name: str


def is_entry_related(entry: LedgerEntry, actor: ActorContext, group_member_ids: Iterable[str] = ()) -> bool:
    """
    Whether the actor may see and change an entry

    For a person borrower the actor must be exactly one of lender or
    borrower. For a group borrower, membership in the group stands in for
    being the borrower, and a lender is never a member.

    Args:
        entry: Entry being accessed
        actor: Current actor
        group_member_ids: Person ids of the borrower group's members
    """
    is_lender = entry.lender_person_id == actor.person_id
    if entry.has_group_borrower:
        return is_lender or actor.person_id in set(group_member_ids)

    is_borrower = entry.borrower_person_id == actor.person_id
    return is_lender != is_borrower
