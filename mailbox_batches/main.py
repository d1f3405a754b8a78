from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .exchange_shell import ExchangeShell
from .models import EXPORT_ALL_ORDER, Category, LocationNotFoundError, Settings
from .selection import batch_prefix, select_and_export
from .splitter import split_master_file
from .utils import ensure_powershell_available


def setup_logging(log_directory: Path) -> Path:
    log_directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_file = log_directory / f"run-{timestamp}.log"

    logger = logging.getLogger()
    logger.setLevel(logging.INFO)
    for h in list(logger.handlers):
        logger.removeHandler(h)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setFormatter(formatter)
    logger.addHandler(fh)

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    logging.info("Logging initialized. File: %s", str(log_file))
    return log_file


def export_category(category: Category, shell, location: Optional[str], settings: Settings) -> List[Path]:
    master_path = select_and_export(category, shell, location, settings.output_dir)
    return split_master_file(
        master_path,
        batch_prefix(category, location),
        settings.batch_size,
        use_batches_folder=settings.use_batches_folder,
        base_dir=settings.output_dir,
    )


ALL_CATEGORIES = "All"


def _category_arg(text: str):
    if text.strip().lower() == ALL_CATEGORIES.lower():
        return ALL_CATEGORIES
    try:
        return Category.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {text}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got: {value}")
    return value


def main(argv: Optional[List[str]] = None, shell_factory: Optional[Callable[[Settings], object]] = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Export Exchange mailbox addresses by category and split them into migration batch CSV files. "
            "Runs on Windows with Windows PowerShell 5.1 and the Exchange Management Shell."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    choices = ", ".join([c.value for c in Category] + [ALL_CATEGORIES])
    parser.add_argument("--category", required=True, type=_category_arg, help=f"Mailbox category to export (case-insensitive): {choices}")
    parser.add_argument("--database", default="", help="Only export mailboxes on this mailbox database (empty = all)")
    parser.add_argument("--batch-size", type=_positive_int, default=None, help="Rows per batch file (default 25, or from --config)")
    parser.add_argument("--view-entire-forest", action="store_true", help="Query the entire forest instead of the local domain")
    parser.add_argument("--batches-folder", action="store_true", help="Write batch files into a 'Batches' subfolder")
    parser.add_argument("--output-dir", default=None, help="Directory for master and batch files (default: current directory)")
    parser.add_argument("--config", required=False, help="Optional JSON settings file")
    parser.add_argument("--log-dir", default=str(Path.cwd() / "logs"), help="Directory to store log files")

    args = parser.parse_args(argv)

    log_file = setup_logging(Path(args.log_dir))
    logging.info(
        "Starting mailbox-batches | category=%s database=%s",
        getattr(args.category, "value", args.category),
        args.database or "(all)",
    )

    settings = Settings()
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            logging.error("Config not found: %s", str(config_path))
            return 2
        try:
            settings = Settings.from_json_file(config_path)
        except Exception as exc:
            logging.error("Invalid config: %s", exc)
            return 2
    if args.batch_size is not None:
        settings.batch_size = int(args.batch_size)
    if args.view_entire_forest:
        settings.view_entire_forest = True
    if args.batches_folder:
        settings.use_batches_folder = True
    if args.output_dir:
        settings.output_dir = Path(args.output_dir)

    if shell_factory is None:
        try:
            ensure_powershell_available(settings.powershell)
        except Exception as exc:
            logging.error("Environment/dependency check failed: %s", exc)
            return 2
        shell_factory = ExchangeShell
    shell = shell_factory(settings)

    categories = list(EXPORT_ALL_ORDER) if args.category == ALL_CATEGORIES else [args.category]
    location = args.database.strip() or None

    failed: List[str] = []
    for category in categories:
        try:
            written = export_category(category, shell, location, settings)
            logging.info("[%s] Finished: %d batch file(s)", category.value, len(written))
        except LocationNotFoundError as exc:
            logging.error("[%s] %s", category.value, exc)
            return 2
        except Exception as exc:
            logging.exception("[%s] Export failed: %s", category.value, exc)
            failed.append(category.value)

    if failed:
        logging.error("Completed with errors for: %s", ", ".join(failed))
        return 1

    logging.info("Done. Log file: %s", log_file)
    return 0
