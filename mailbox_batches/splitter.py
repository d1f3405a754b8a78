import logging
import math
import re
from pathlib import Path
from typing import List, Optional

from .records import read_address_csv, write_address_csv
from .utils import remove_existing

BATCHES_FOLDER = "Batches"
DEFAULT_BATCH_SIZE = 25


def batch_count(total_rows: int, batch_size: int) -> int:
    if total_rows < batch_size:
        return 1
    return math.ceil(total_rows / batch_size)


def index_width(count: int) -> int:
    return len(str(count))


def remove_stale_batches(out_dir: Path, output_prefix: str, keep: Optional[Path] = None) -> int:
    """Delete every `<prefix><digits>.csv` in `out_dir`, whatever its padding."""
    keep = keep.resolve() if keep is not None else None
    pattern = re.compile(re.escape(output_prefix) + r"\d+\.csv")
    removed = 0
    for path in sorted(out_dir.iterdir()):
        if path.is_file() and pattern.fullmatch(path.name) and path.resolve() != keep:
            remove_existing(path, "split")
            removed += 1
    return removed


def split_master_file(
    master_path: Path,
    output_prefix: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    *,
    use_batches_folder: bool = False,
    base_dir: Optional[Path] = None,
) -> List[Path]:
    """Split a master CSV into `<prefix><n>.csv` files of at most `batch_size` rows.

    The index is zero-padded to the digit count of the total number of
    batches. A missing master file is not an error: nothing is written and
    an empty list is returned.
    """
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise ValueError(f"batch size must be a positive integer, got: {batch_size!r}")

    master_path = Path(master_path)
    if not master_path.exists():
        logging.info("[split] No master file at %s, nothing to split", master_path)
        return []

    out_dir = Path(base_dir) if base_dir is not None else Path.cwd()
    if use_batches_folder:
        out_dir = out_dir / BATCHES_FOLDER
    out_dir.mkdir(parents=True, exist_ok=True)

    records = read_address_csv(master_path)
    count = batch_count(len(records), batch_size)
    width = index_width(count)
    logging.info(
        "[split] %s: %d row(s) -> %d batch file(s) of up to %d",
        master_path.name, len(records), count, batch_size,
    )

    remove_stale_batches(out_dir, output_prefix, keep=master_path)

    written: List[Path] = []
    for k in range(1, count + 1):
        chunk = records[(k - 1) * batch_size : k * batch_size]
        target = out_dir / f"{output_prefix}{k:0{width}d}.csv"
        write_address_csv(target, chunk)
        logging.info("[split] Wrote %d row(s) to %s", len(chunk), target)
        written.append(target)
    return written
