"""
People and Groups Directory

Minimal person/group registry the ledger needs: name lookups, group
membership and resolution of the acting person by name.
"""

from datetime import datetime, timezone
from typing import List, Optional
import logging

from .context import ActorContext, is_entry_related
from .errors import NotFoundError, ValidationError
from .models import Person, Group, GroupMember, LedgerEntry, new_id
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


class Directory:
    """Registry of people and groups"""

    def __init__(self, storage: StorageInterface, default_actor_name: str = "Parent User"):
        self.storage = storage
        self.default_actor_name = default_actor_name

    def create_person(self, full_name: str) -> Person:
        if not full_name or not full_name.strip():
            raise ValidationError("Person name is required")
        now = datetime.now(timezone.utc)
        person = Person(id=new_id(), created_at=now, updated_at=now, full_name=full_name.strip())
        self.storage.save(Tables.PEOPLE, person.id, person.to_dict())
        logger.info(f"Created person {person.full_name}")
        return person

    def get_person(self, person_id: str) -> Optional[Person]:
        data = self.storage.load(Tables.PEOPLE, person_id)
        return Person.from_dict(data) if data else None

    def require_person(self, person_id: str) -> Person:
        person = self.get_person(person_id)
        if person is None:
            raise NotFoundError.for_id("Person", person_id)
        return person

    def find_person_by_name(self, full_name: str) -> Optional[Person]:
        data = self.storage.find_one(Tables.PEOPLE, {"full_name": full_name})
        return Person.from_dict(data) if data else None

    def list_people(self) -> List[Person]:
        return [Person.from_dict(data) for data in self.storage.load_all(Tables.PEOPLE)]

    def create_group(self, group_name: str, member_ids: Optional[List[str]] = None,
                     description: Optional[str] = None) -> Group:
        """Create a group and add the given people as members"""
        if not group_name or not group_name.strip():
            raise ValidationError("Group name is required")
        now = datetime.now(timezone.utc)
        group = Group(id=new_id(), created_at=now, updated_at=now,
                      group_name=group_name.strip(), description=description)
        with self.storage.atomic():
            self.storage.save(Tables.GROUPS, group.id, group.to_dict())
            for person_id in member_ids or []:
                self.add_member(group.id, person_id)
        logger.info(f"Created group {group.group_name} with {len(member_ids or [])} members")
        return group

    def get_group(self, group_id: str) -> Optional[Group]:
        data = self.storage.load(Tables.GROUPS, group_id)
        return Group.from_dict(data) if data else None

    def require_group(self, group_id: str) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise NotFoundError.for_id("Group", group_id)
        return group

    def add_member(self, group_id: str, person_id: str) -> GroupMember:
        self.require_person(person_id)
        existing = self.storage.find_one(Tables.GROUP_MEMBERS, {"group_id": group_id, "person_id": person_id})
        if existing:
            return GroupMember.from_dict(existing)
        now = datetime.now(timezone.utc)
        member = GroupMember(id=new_id(), created_at=now, updated_at=now,
                             group_id=group_id, person_id=person_id)
        self.storage.save(Tables.GROUP_MEMBERS, member.id, member.to_dict())
        return member

    def member_ids(self, group_id: str) -> List[str]:
        return [data["person_id"] for data in self.storage.find(Tables.GROUP_MEMBERS, {"group_id": group_id})]

    def is_member(self, group_id: str, person_id: str) -> bool:
        return self.storage.exists_where(Tables.GROUP_MEMBERS, {"group_id": group_id, "person_id": person_id})

    def resolve_actor(self, name: Optional[str] = None) -> ActorContext:
        """
        Actor for a request, creating the person on first sight

        Falls back to the configured default actor when no name is given.
        """
        name = (name or "").strip() or self.default_actor_name
        person = self.find_person_by_name(name)
        if person is None:
            person = self.create_person(name)
        return ActorContext(person_id=person.id, name=person.full_name)

    def is_related(self, entry: LedgerEntry, actor: ActorContext) -> bool:
        """Whether the actor is a party to the entry (see is_entry_related)"""
        members = self.member_ids(entry.borrower_group_id) if entry.has_group_borrower else []
        return is_entry_related(entry, actor, members)
