"""
Loan Tracker System

Wires storage, the directory and the ledger managers together.
"""

from typing import Optional
import logging

from .allocations import AllocationManager
from .attachments import AttachmentStore
from .config import LoanTrackerConfig, get_config
from .directory import Directory
from .entries import EntryManager
from .installments import InstallmentManager
from .migrations import MigrationManager
from .payments import PaymentManager
from .reconciliation import LedgerReconciler
from .storage import StorageInterface, InMemoryStorage, SQLiteStorage


logger = logging.getLogger(__name__)


class LedgerSystem:
    """Loan tracker with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 settings: Optional[LoanTrackerConfig] = None):
        self.settings = settings or get_config()

        if storage is None:
            if self.settings.use_sqlite:
                storage = SQLiteStorage(self.settings.database_path)
            else:
                storage = InMemoryStorage()
        self.storage = storage

        self.directory = Directory(self.storage, self.settings.default_actor_name)
        self.attachments = AttachmentStore(self.storage)
        self.reconciler = LedgerReconciler(self.storage)
        self.installment_manager = InstallmentManager(
            self.storage, self.directory, self.reconciler,
            late_fee_rate=self.settings.late_fee_rate_decimal,
            minimum_late_fee=self.settings.minimum_late_fee_decimal
        )
        self.allocation_manager = AllocationManager(self.storage, self.directory)
        self.entry_manager = EntryManager(
            self.storage, self.directory, self.reconciler,
            self.installment_manager, self.allocation_manager, self.attachments
        )
        self.payment_manager = PaymentManager(
            self.storage, self.directory, self.reconciler,
            self.installment_manager, self.allocation_manager, self.attachments
        )
        self.migration_manager = MigrationManager(self.storage)

        if self.settings.auto_migrate:
            self.migration_manager.migrate_up()

        # The fallback actor always exists
        self.directory.resolve_actor(None)
        logger.info(f"Loan tracker initialized with {type(self.storage).__name__}")

    def close(self) -> None:
        self.storage.close()
