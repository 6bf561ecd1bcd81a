"""
Data Migration System

Versioned, one-time data migrations over the document store. Each
migration is a Python callable run inside an atomic block and recorded in
the schema_migrations table.
"""

from typing import Callable, List, Optional, Dict, Any, Tuple
from datetime import datetime, timezone
import hashlib
import json
import logging

from .models import InstallmentPlan
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)

LEGACY_DAY_MARKER = "__PAYMENT_FREQUENCY_DAY__:"


class Migration:
    """Represents a single data migration"""

    def __init__(self, version: int, name: str, up: Callable[[StorageInterface], int],
                 down: Optional[Callable[[StorageInterface], int]] = None):
        self.version = version
        self.name = name
        self.up = up
        self.down = down
        self.applied_at: Optional[datetime] = None

    @property
    def checksum(self) -> str:
        return hashlib.md5(f"{self.version}:{self.name}".encode()).hexdigest()

    def __str__(self) -> str:
        return f"Migration v{self.version:03d}: {self.name}"

    def __repr__(self) -> str:
        return f"Migration(version={self.version}, name='{self.name}')"


def split_legacy_plan_notes(notes: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Separate a plan's day selector from its user notes

    Older plans kept the day selector inside the notes text, either as JSON
    {"paymentFrequencyDay": ..., "userNotes": ...} or as a
    "__PAYMENT_FREQUENCY_DAY__:<day>__" prefix followed by the notes.

    Returns:
        (day selector, user notes); plain notes come back unchanged
    """
    if notes is None or not notes.strip():
        return None, None

    try:
        data = json.loads(notes)
    except ValueError:
        data = None
    if isinstance(data, dict):
        day = data.get("paymentFrequencyDay")
        return (str(day) if day is not None else None), data.get("userNotes")

    start = notes.find(LEGACY_DAY_MARKER)
    if start >= 0:
        start += len(LEGACY_DAY_MARKER)
        end = notes.find("__", start)
        if end > start:
            remaining = notes[end + 2:].strip()
            return notes[start:end], remaining or None

    return None, notes


def move_day_selector_out_of_notes(storage: StorageInterface) -> int:
    """Fill InstallmentPlan.due_day from legacy notes; returns plans changed"""
    changed = 0
    for data in storage.load_all(Tables.INSTALLMENT_PLANS):
        plan = InstallmentPlan.from_dict(data)
        if plan.due_day:
            continue
        day, user_notes = split_legacy_plan_notes(plan.notes)
        if day is None:
            continue
        plan.due_day = day.strip() or None
        plan.notes = user_notes
        plan.touch()
        storage.save(Tables.INSTALLMENT_PLANS, plan.id, plan.to_dict())
        changed += 1
    return changed


class MigrationManager:
    """Manages data migrations"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.migrations: List[Migration] = []
        self._migration_table = Tables.MIGRATIONS
        self._init_migrations()

    def _init_migrations(self) -> None:
        """Register built-in migrations"""
        self.add_migration(1, "Move payment day selector out of plan notes", move_day_selector_out_of_notes)

    def add_migration(self, version: int, name: str, up: Callable[[StorageInterface], int],
                      down: Optional[Callable[[StorageInterface], int]] = None) -> None:
        """Add a migration to the manager"""
        self.migrations.append(Migration(version, name, up, down))
        self.migrations.sort(key=lambda m: m.version)

    def get_applied_migrations(self) -> List[Dict[str, Any]]:
        return self.storage.load_all(self._migration_table)

    def get_current_version(self) -> int:
        versions = [m["version"] for m in self.get_applied_migrations() if isinstance(m.get("version"), int)]
        return max(versions) if versions else 0

    def get_pending_migrations(self, target_version: Optional[int] = None) -> List[Migration]:
        current_version = self.get_current_version()
        max_version = target_version or max((m.version for m in self.migrations), default=0)
        return [m for m in self.migrations if current_version < m.version <= max_version]

    def migrate_up(self, target_version: Optional[int] = None) -> List[Migration]:
        """Apply pending migrations up to target version"""
        pending = self.get_pending_migrations(target_version)
        applied = []

        if not pending:
            logger.info("No pending migrations to apply")
            return applied

        logger.info(f"Applying {len(pending)} pending migrations")

        for migration in pending:
            try:
                with self.storage.atomic():
                    changed = migration.up(self.storage)
                    self.storage.save(self._migration_table, f"v{migration.version:03d}", {
                        "id": f"v{migration.version:03d}",
                        "version": migration.version,
                        "name": migration.name,
                        "applied_at": datetime.now(timezone.utc).isoformat(),
                        "checksum": migration.checksum
                    })
            except Exception as e:
                logger.error(f"Failed to apply {migration}: {e}")
                raise RuntimeError(f"Migration failed: {migration}") from e

            migration.applied_at = datetime.now(timezone.utc)
            applied.append(migration)
            logger.info(f"Applied {migration} ({changed} records changed)")

        return applied

    def migrate_down(self, target_version: int) -> List[Migration]:
        """Forget migrations above target version, running their down step if they have one"""
        current_version = self.get_current_version()
        rolled_back = []
        for migration in reversed(self.migrations):
            if not target_version < migration.version <= current_version:
                continue
            with self.storage.atomic():
                if migration.down is not None:
                    migration.down(self.storage)
                else:
                    logger.warning(f"{migration} has no down step; only its record is removed")
                self.storage.delete(self._migration_table, f"v{migration.version:03d}")
            rolled_back.append(migration)
        return rolled_back

    def get_migration_status(self) -> Dict[str, Any]:
        pending = self.get_pending_migrations()
        return {
            "current_version": self.get_current_version(),
            "latest_version": max((m.version for m in self.migrations), default=0),
            "pending_count": len(pending),
            "pending_migrations": [{"version": m.version, "name": m.name} for m in pending],
            "needs_migration": len(pending) > 0
        }
