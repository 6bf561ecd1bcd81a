"""
Proof Attachment Store

Stores proof images as opaque bytes with a content type. The ledger only
asks whether a payment has proof and hands the bytes back on download.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging

from .errors import ValidationError
from .models import Attachment, new_id
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ProofUpload:
    """Proof file supplied with a create or update"""
    data: bytes
    content_type: Optional[str] = None
    filename: Optional[str] = None


class AttachmentStore:
    """Attachment persistence keyed by payment or entry"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def attach_to_payment(self, payment_id: str, proof: ProofUpload) -> Attachment:
        """
        Store or replace the proof of a payment

        Raises:
            ValidationError: If the proof cannot be stored; callers run this
                inside their atomic block so the whole operation is undone
        """
        try:
            self.storage.delete_where(Tables.ATTACHMENTS, {"payment_id": payment_id})
            return self._save(proof, payment_id=payment_id)
        except Exception as e:
            logger.error(f"Failed to store proof for payment {payment_id}: {e}")
            raise ValidationError("Failed to store proof attachment") from e

    def attach_to_entry(self, entry_id: str, proof: ProofUpload) -> Attachment:
        try:
            self.storage.delete_where(Tables.ATTACHMENTS, {"entry_id": entry_id})
            return self._save(proof, entry_id=entry_id)
        except Exception as e:
            logger.error(f"Failed to store proof for entry {entry_id}: {e}")
            raise ValidationError("Failed to store proof attachment") from e

    def _save(self, proof: ProofUpload, payment_id: Optional[str] = None,
              entry_id: Optional[str] = None) -> Attachment:
        if not proof.data:
            raise ValueError("Proof file is empty")
        now = datetime.now(timezone.utc)
        attachment = Attachment(
            id=new_id(),
            created_at=now,
            updated_at=now,
            file_data=proof.data,
            content_type=proof.content_type,
            original_filename=proof.filename,
            file_size=len(proof.data),
            payment_id=payment_id,
            entry_id=entry_id
        )
        self.storage.save(Tables.ATTACHMENTS, attachment.id, attachment.to_dict())
        return attachment

    def for_payment(self, payment_id: str) -> Optional[Attachment]:
        data = self.storage.find_one(Tables.ATTACHMENTS, {"payment_id": payment_id})
        return Attachment.from_dict(data) if data else None

    def for_entry(self, entry_id: str) -> Optional[Attachment]:
        data = self.storage.find_one(Tables.ATTACHMENTS, {"entry_id": entry_id})
        return Attachment.from_dict(data) if data else None

    def has_proof(self, payment_id: str) -> bool:
        return self.storage.exists_where(Tables.ATTACHMENTS, {"payment_id": payment_id})

    def delete_for_payment(self, payment_id: str) -> int:
        return self.storage.delete_where(Tables.ATTACHMENTS, {"payment_id": payment_id})

    def delete_for_entry(self, entry_id: str) -> int:
        return self.storage.delete_where(Tables.ATTACHMENTS, {"entry_id": entry_id})
