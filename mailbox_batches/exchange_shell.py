import json
import logging
import subprocess
from typing import Any, List, Optional

from .models import ExchangeQueryError, MailboxEntry, Settings

PROJECTION = (
    "Select-Object DisplayName,"
    "@{Name='EmailAddress';Expression={[string]$_.PrimarySmtpAddress}}"
)


def ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _parse_entries(stdout: str) -> List[MailboxEntry]:
    text = stdout.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ExchangeQueryError(f"Unparsable shell output: {exc}: {text[:200]}") from exc
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ExchangeQueryError(f"Unexpected shell output type: {type(data).__name__}")

    entries: List[MailboxEntry] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        address: Any = item.get("EmailAddress")
        # SmtpAddress objects serialise as a dict when not projected to string
        if isinstance(address, dict):
            address = address.get("Address")
        if not address:
            logging.debug("[shell] Skipping entry without address: %s", item.get("DisplayName"))
            continue
        entries.append(MailboxEntry(display_name=str(item.get("DisplayName") or ""), email_address=str(address)))
    return entries


class ExchangeShell:
    """Read-only access to the Exchange directory through the Management Shell.

    Every query runs in its own PowerShell process, so the forest-wide view is
    applied per call from `view_entire_forest` rather than left behind as
    session state.
    """

    def __init__(self, settings: Settings, view_entire_forest: Optional[bool] = None) -> None:
        self.settings = settings
        self.view_entire_forest = settings.view_entire_forest if view_entire_forest is None else view_entire_forest

    def _script(self, body: str) -> str:
        lines = [
            "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8",
            "$ErrorActionPreference = 'Stop'",
        ]
        if self.settings.snapin:
            lines.append(f"Add-PSSnapin {ps_quote(self.settings.snapin)}")
        if self.view_entire_forest:
            lines.append("Set-ADServerSettings -ViewEntireForest $true")
        lines.append(body)
        return "; ".join(lines)

    def run(self, body: str) -> str:
        args = [
            self.settings.powershell,
            "-NoLogo",
            "-NoProfile",
            "-NonInteractive",
            "-Command",
            self._script(body),
        ]
        logging.debug("[shell] Running: %s", body)
        try:
            res = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=False,
                text=True,
                encoding="utf-8-sig",
                timeout=self.settings.timeout_sec,
            )
        except subprocess.TimeoutExpired as exc:
            raise ExchangeQueryError(f"Shell query timed out after {self.settings.timeout_sec}s: {body}") from exc
        except UnicodeDecodeError as exc:
            raise ExchangeQueryError(f"Shell output is not valid UTF-8 ({exc}): {body}") from exc
        if res.returncode != 0:
            detail = (res.stderr or res.stdout or "").strip()
            raise ExchangeQueryError(f"Shell query failed (exit {res.returncode}): {detail}")
        return res.stdout

    def _query(self, pipeline: str) -> List[MailboxEntry]:
        body = f"ConvertTo-Json -Compress -InputObject @({pipeline} | {PROJECTION})"
        return _parse_entries(self.run(body))

    def database_exists(self, name: str) -> bool:
        out = self.run(
            f"[bool](Get-MailboxDatabase -Identity {ps_quote(name)} -ErrorAction SilentlyContinue) | ConvertTo-Json"
        )
        return out.strip().lower() == "true"

    @staticmethod
    def _db_arg(database: Optional[str]) -> str:
        return f" -Database {ps_quote(database)}" if database else ""

    def list_mailboxes(self, recipient_type: str, database: Optional[str] = None) -> List[MailboxEntry]:
        return self._query(
            f"Get-Mailbox -ResultSize Unlimited -RecipientTypeDetails {recipient_type}{self._db_arg(database)}"
        )

    def list_public_folder_mailboxes(self, database: Optional[str] = None) -> List[MailboxEntry]:
        return self._query(f"Get-Mailbox -PublicFolder -ResultSize Unlimited{self._db_arg(database)}")

    def list_arbitration_mailboxes(self, database: Optional[str] = None) -> List[MailboxEntry]:
        return self._query(f"Get-Mailbox -Arbitration -ResultSize Unlimited{self._db_arg(database)}")

    def list_audit_log_mailboxes(self, database: Optional[str] = None) -> List[MailboxEntry]:
        return self._query(f"Get-Mailbox -AuditLog -ResultSize Unlimited{self._db_arg(database)}")

    def list_discovery_mailboxes(self, database: Optional[str] = None) -> List[MailboxEntry]:
        return self._query(
            f"Get-Mailbox -ResultSize Unlimited -Filter \"Name -like 'Discovery*'\"{self._db_arg(database)}"
        )

    def list_archive_mailboxes(self, archive_database: Optional[str] = None) -> List[MailboxEntry]:
        pipeline = "Get-Mailbox -Archive -ResultSize Unlimited"
        if archive_database:
            pipeline += f" | Where-Object {{ [string]$_.ArchiveDatabase -eq {ps_quote(archive_database)} }}"
        return self._query(pipeline)
