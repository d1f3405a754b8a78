#!/usr/bin/env python3
"""
mailbox-batch-exporter

Queries the Exchange Management Shell for mailboxes of one category (User,
Shared, Room, Equipment, PublicFolder, Arbitration, Archive, or All), writes
their primary SMTP addresses to a master CSV, and splits it into numbered
batch CSV files ready to feed New-MigrationBatch.

Requires PowerShell with the Exchange Management Shell snap-in on the host.
"""

import sys

from mailbox_batches.main import main


if __name__ == "__main__":
    sys.exit(main())
