"""
Error Taxonomy

Validation errors reject an operation before any write. Not-found and
not-authorized collapse into NotFoundError so callers cannot tell whether
a record exists but belongs to someone else.
"""


class LedgerError(Exception):
    """Base class for loan tracker errors"""


class ValidationError(LedgerError, ValueError):
    """Missing or contradictory input"""


class NotFoundError(LedgerError, LookupError):
    """Record does not exist or is not visible to the current actor"""

    @classmethod
    def for_id(cls, thing: str, record_id: str) -> 'NotFoundError':
        return cls(f"{thing} not found with id: {record_id}")
