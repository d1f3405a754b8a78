import logging
import re
import shutil
from pathlib import Path

SANITIZE_PATTERN = re.compile(r"[^A-Za-z0-9_.@+-]+")


def sanitize_for_path(name: str) -> str:
    name = name.strip().replace("/", "_").replace("\\", "_")
    name = SANITIZE_PATTERN.sub("_", name)
    return name[:200] if len(name) > 200 else name


def ensure_powershell_available(executable: str) -> str:
    path = shutil.which(executable)
    if not path:
        raise RuntimeError(
            f"The PowerShell executable '{executable}' was not found in PATH. "
            "The Exchange snap-in needs Windows PowerShell 5.1 on a Windows host with the Exchange Management Tools installed; "
            "set 'powershell' in the config if it lives elsewhere."
        )
    return path


def remove_existing(path: Path, label: str) -> bool:
    """Delete `path` if present so the caller can rewrite it from scratch.

    Returns True when a file was removed.
    """
    if not path.exists():
        return False
    logging.warning("[%s] Removing existing file: %s", label, path)
    path.unlink()
    return True
