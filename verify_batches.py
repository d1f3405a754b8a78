#!/usr/bin/env python3
"""
Batch verification script - checks that the batch CSV files produced for a
master file cover every address exactly once, in the original order.
"""

import argparse
import re
import sys
from pathlib import Path

from mailbox_batches.records import read_address_csv
from mailbox_batches.splitter import DEFAULT_BATCH_SIZE, batch_count, index_width


def find_batches(batch_dir, prefix):
    """Return {index_text: path} for files named <prefix><digits>.csv"""
    pattern = re.compile(re.escape(prefix) + r"(\d+)\.csv$")
    found = {}
    for path in batch_dir.glob(f"{prefix}*.csv"):
        m = pattern.match(path.name)
        if m:
            found[m.group(1)] = path
    return found


def verify_batches(master_path, batch_dir, prefix, batch_size=DEFAULT_BATCH_SIZE):
    issues = []
    master = [r.email_address for r in read_address_csv(master_path)]
    batches = find_batches(batch_dir, prefix)

    if not batches:
        return [f"no batch files matching {prefix}<n>.csv in {batch_dir}"]

    expected_count = batch_count(len(master), batch_size)
    expected_width = index_width(expected_count)

    if len(batches) != expected_count:
        issues.append(f"expected {expected_count} batch file(s), found {len(batches)}")

    bad_width = sorted(k for k in batches if len(k) != expected_width)
    if bad_width:
        issues.append(f"index width should be {expected_width}: {', '.join(bad_width)}")

    indices = sorted(int(k) for k in batches)
    if indices != list(range(1, len(indices) + 1)):
        issues.append(f"indices are not contiguous from 1: {indices}")

    combined = []
    ordered = sorted(batches.items(), key=lambda kv: int(kv[0]))
    for pos, (key, path) in enumerate(ordered, start=1):
        rows = [r.email_address for r in read_address_csv(path)]
        if len(rows) > batch_size:
            issues.append(f"{path.name}: {len(rows)} rows exceeds batch size {batch_size}")
        if pos < len(ordered) and len(rows) != batch_size:
            issues.append(f"{path.name}: only the last batch may be short ({len(rows)} rows)")
        combined.extend(rows)

    if combined != master:
        missing = len(set(master) - set(combined))
        extra = len(set(combined) - set(master))
        issues.append(
            f"batches do not reproduce master: master={len(master)} rows, batches={len(combined)} rows, "
            f"missing={missing}, unexpected={extra}"
        )
    return issues


def main(argv=None):
    parser = argparse.ArgumentParser(description="Verify batch CSV files against their master file.")
    parser.add_argument("master", help="Master CSV file")
    parser.add_argument("prefix", help="Batch file prefix, e.g. User_Batch")
    parser.add_argument("--batch-dir", default=None, help="Directory holding the batches (default: master's directory)")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE, help="Expected rows per batch")
    args = parser.parse_args(argv)

    master_path = Path(args.master)
    if not master_path.exists():
        print(f"❌ Master file not found: {master_path}")
        return 1
    batch_dir = Path(args.batch_dir) if args.batch_dir else master_path.parent

    print(f"🔍 Verifying {args.prefix}<n>.csv in {batch_dir} against {master_path.name}...")
    issues = verify_batches(master_path, batch_dir, args.prefix, args.batch_size)

    if not issues:
        print("✅ Batches reproduce the master file exactly.")
        return 0

    print(f"⚠️  {len(issues)} issue(s) found:")
    for issue in issues:
        print(f"  {issue}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
