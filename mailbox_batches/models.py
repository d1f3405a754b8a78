from __future__ import annotations

import dataclasses
import enum
import json
from pathlib import Path
from typing import List, Optional


class Category(enum.Enum):
    USER = "User"
    SHARED = "Shared"
    ROOM = "Room"
    EQUIPMENT = "Equipment"
    PUBLIC_FOLDER = "PublicFolder"
    ARBITRATION = "Arbitration"
    ARCHIVE = "Archive"

    @staticmethod
    def parse(text: str) -> "Category":
        wanted = text.strip().lower()
        for cat in Category:
            if cat.value.lower() == wanted:
                return cat
        choices = ", ".join(c.value for c in Category)
        raise ValueError(f"Unknown category '{text}' (expected one of: {choices})")


# Processing order for --category All
EXPORT_ALL_ORDER: List[Category] = list(Category)

# RecipientTypeDetails value for categories backed by a plain Get-Mailbox query
RECIPIENT_TYPES = {
    Category.USER: "UserMailbox",
    Category.SHARED: "SharedMailbox",
    Category.ROOM: "RoomMailbox",
    Category.EQUIPMENT: "EquipmentMailbox",
}


@dataclasses.dataclass(frozen=True)
class AddressRecord:
    email_address: str


@dataclasses.dataclass(frozen=True)
class MailboxEntry:
    display_name: str
    email_address: str


class LocationNotFoundError(RuntimeError):
    """Raised when a --database filter names a database that does not exist."""


class ExchangeQueryError(RuntimeError):
    pass


# Add-PSSnapin only exists in Windows PowerShell 5.1, not in PowerShell 7 (pwsh)
DEFAULT_POWERSHELL = "powershell.exe"


@dataclasses.dataclass
class Settings:
    powershell: str = DEFAULT_POWERSHELL
    snapin: Optional[str] = "Microsoft.Exchange.Management.PowerShell.SnapIn"
    view_entire_forest: bool = False
    timeout_sec: int = 600
    batch_size: int = 25
    use_batches_folder: bool = False
    output_dir: Path = dataclasses.field(default_factory=lambda: Path("."))

    @staticmethod
    def from_json_file(path: Path) -> "Settings":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError("Config root must be an object")

        settings = Settings()
        if "powershell" in data:
            value = data["powershell"]
            if not value or not isinstance(value, str):
                raise ValueError("powershell must be a non-empty string")
            settings.powershell = value
        if "snapin" in data:
            value = data["snapin"]
            if value is not None and not isinstance(value, str):
                raise ValueError("snapin must be a string or null")
            settings.snapin = value or None
        for key in ("view_entire_forest", "use_batches_folder"):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ValueError(f"{key} must be true or false")
                setattr(settings, key, data[key])
        for key in ("timeout_sec", "batch_size"):
            if key in data:
                value = data[key]
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    raise ValueError(f"{key} must be a positive integer")
                setattr(settings, key, value)
        if "output_dir" in data:
            value = data["output_dir"]
            if not value or not isinstance(value, str):
                raise ValueError("output_dir must be a non-empty string")
            settings.output_dir = Path(value)
        return settings
