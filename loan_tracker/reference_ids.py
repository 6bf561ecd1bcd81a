"""
Reference ID Generator

Short human-readable codes for entries built from name initials, e.g.
"DJ" + "PU" for John Doe borrowing from Parent User.
"""

import re
from typing import Callable

from .models import Person, Group


UNKNOWN_INITIALS = "UNK"
GROUP_PREFIX_LENGTH = 5


def extract_initials(full_name: str) -> str:
    """
    Initials of a name

    Handles "Surname, First Name, Middle" (surname first, up to three
    initials) and "First Name Last Name" (one initial per word).
    """
    if not full_name or not full_name.strip():
        return UNKNOWN_INITIALS

    parts = full_name.split(",")
    if len(parts) >= 2:
        words = [part.strip() for part in parts[:3]]
    else:
        words = full_name.split()

    initials = "".join(word[0] for word in words if word)
    return initials.upper() if initials else UNKNOWN_INITIALS


def group_prefix(group_name: str) -> str:
    """First five upper-case alphanumeric characters of a group name"""
    return re.sub(r"[^A-Z0-9]", "", (group_name or "").upper())[:GROUP_PREFIX_LENGTH]


def person_reference(borrower: Person, lender: Person) -> str:
    return extract_initials(borrower.full_name) + extract_initials(lender.full_name)


def group_reference(group: Group, lender: Person) -> str:
    return group_prefix(group.group_name) + extract_initials(lender.full_name)


def unique_reference(base: str, is_taken: Callable[[str], bool]) -> str:
    """Base code, or base followed by 1, 2, ... until one is free"""
    candidate = base
    counter = 1
    while is_taken(candidate):
        candidate = f"{base}{counter}"
        counter += 1
    return candidate
