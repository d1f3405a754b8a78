"""Per-category mailbox selection and master file export.

Each category maps to a selector with a single `fetch(location)` method
returning address records in output order. `select_and_export` wraps that
with location validation and the overwrite of the master CSV.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from .models import RECIPIENT_TYPES, AddressRecord, Category, LocationNotFoundError, MailboxEntry
from .records import write_address_csv
from .utils import remove_existing, sanitize_for_path


def sorted_records(entries: Iterable[MailboxEntry]) -> List[AddressRecord]:
    ordered = sorted(entries, key=lambda e: e.display_name.casefold())
    return [AddressRecord(email_address=e.email_address) for e in ordered]


class MailboxSelector:
    slow_with_filter = False

    def __init__(self, shell) -> None:
        self.shell = shell

    def fetch(self, location: Optional[str] = None) -> List[AddressRecord]:
        raise NotImplementedError


class StandardSelector(MailboxSelector):
    def __init__(self, shell, recipient_type: str) -> None:
        super().__init__(shell)
        self.recipient_type = recipient_type

    def fetch(self, location: Optional[str] = None) -> List[AddressRecord]:
        return sorted_records(self.shell.list_mailboxes(self.recipient_type, location))


class PublicFolderSelector(MailboxSelector):
    def fetch(self, location: Optional[str] = None) -> List[AddressRecord]:
        return sorted_records(self.shell.list_public_folder_mailboxes(location))


class ArbitrationSelector(MailboxSelector):
    """Arbitration, audit-log and Discovery* system mailboxes, appended in that order."""

    def fetch(self, location: Optional[str] = None) -> List[AddressRecord]:
        records: List[AddressRecord] = []
        sources = [
            ("arbitration", self.shell.list_arbitration_mailboxes),
            ("audit log", self.shell.list_audit_log_mailboxes),
            ("discovery", self.shell.list_discovery_mailboxes),
        ]
        for label, query in sources:
            found = sorted_records(query(location))
            if not found:
                logging.info("[select] No %s mailboxes found", label)
                continue
            logging.info("[select] %d %s mailbox(es)", len(found), label)
            records.extend(found)
        return records


class ArchiveSelector(MailboxSelector):
    slow_with_filter = True

    def fetch(self, location: Optional[str] = None) -> List[AddressRecord]:
        return sorted_records(self.shell.list_archive_mailboxes(location))


def selector_for(category: Category, shell) -> MailboxSelector:
    if category in RECIPIENT_TYPES:
        return StandardSelector(shell, RECIPIENT_TYPES[category])
    if category is Category.PUBLIC_FOLDER:
        return PublicFolderSelector(shell)
    if category is Category.ARBITRATION:
        return ArbitrationSelector(shell)
    if category is Category.ARCHIVE:
        return ArchiveSelector(shell)
    raise ValueError(f"No selector for category: {category}")


def _scope_suffix(location: Optional[str]) -> str:
    return f"_{sanitize_for_path(location)}" if location else ""


def master_file_name(category: Category, location: Optional[str] = None) -> str:
    return f"{category.value}Mailboxes{_scope_suffix(location)}.csv"


def batch_prefix(category: Category, location: Optional[str] = None) -> str:
    return f"{category.value}{_scope_suffix(location)}_Batch"


def select_and_export(category: Category, shell, location: Optional[str], output_dir: Path) -> Path:
    """Write the master CSV for `category` and return its path.

    The file is only created when at least one mailbox was found; callers
    must tolerate a returned path that does not exist.
    """
    location = (location or "").strip() or None
    if location and not shell.database_exists(location):
        raise LocationNotFoundError(f"Mailbox database not found: {location}")

    selector = selector_for(category, shell)
    if location and selector.slow_with_filter:
        logging.warning(
            "[select] Filtering %s mailboxes by database %s enumerates every archive; this can take a while",
            category.value, location,
        )

    output_dir.mkdir(parents=True, exist_ok=True)
    master_path = output_dir / master_file_name(category, location)
    remove_existing(master_path, "select")

    scope = f"database {location}" if location else "all databases"
    logging.info("[select] Querying %s mailboxes (%s)", category.value, scope)
    records = selector.fetch(location)
    if not records:
        logging.info("[select] No %s mailboxes found; master file not written", category.value)
        return master_path

    count = write_address_csv(master_path, records)
    logging.info("[select] Wrote %d address(es) to %s", count, master_path)
    return master_path
