import csv
from pathlib import Path
from typing import Iterable, List

from .models import AddressRecord

EMAIL_COLUMN = "EmailAddress"


def write_address_csv(path: Path, records: Iterable[AddressRecord]) -> int:
    count = 0
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=[EMAIL_COLUMN])
        writer.writeheader()
        for rec in records:
            writer.writerow({EMAIL_COLUMN: rec.email_address})
            count += 1
    return count


def read_address_csv(path: Path) -> List[AddressRecord]:
    # utf-8-sig: Export-Csv and Excel both like to prepend a BOM
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            return []
        if EMAIL_COLUMN not in reader.fieldnames:
            raise ValueError(f"{path}: missing '{EMAIL_COLUMN}' column (found: {', '.join(reader.fieldnames)})")
        return [AddressRecord(email_address=row[EMAIL_COLUMN] or "") for row in reader]
