#!/usr/bin/env python3
"""
Import the "Sale" sheet of an SAP sales export into the backend.
"""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from retail_admin.api.backend_client import BackendClient
from retail_admin.shared.errors import BackendAPIError, ImportFileError, ImportValidationError
from retail_admin.shared.importers import sales
from retail_admin.shared.importers.progress import ImportProgress

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

package_dir = Path(__file__).parent.parent.absolute()
env_path = package_dir / ".env"
if env_path.exists():
    load_dotenv(env_path)
    logger.info(f"Loaded env file: {env_path}")


def log_progress(progress: ImportProgress) -> None:
    if progress.status == "processing" and progress.message and progress.message.startswith("Processing row"):
        # one event per parsed row is too chatty for a log
        return
    logger.info(f"[{progress.status}] {progress.percentage}% {progress.message or ''}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import sales master data from an Excel workbook")
    parser.add_argument("file", type=Path, help="Excel workbook with a 'Sale' sheet")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=sales.DEFAULT_BATCH_SIZE,
        help="records per bulk-import request",
    )
    parser.add_argument("--dry-run", action="store_true", help="parse and validate only")
    args = parser.parse_args(argv)

    if not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    logger.info(f"Reading {args.file}")
    try:
        records = sales.parse_sales_workbook(args.file.read_bytes(), args.file.name, on_progress=log_progress)
    except ImportValidationError as e:
        logger.error(f"{len(e.details)} invalid rows:")
        for detail in e.details:
            logger.error(f"   - {detail}")
        return 1
    except ImportFileError as e:
        logger.error(f"Cannot import {args.file.name}: {e}")
        return 1

    logger.info(f"Parsed {len(records)} sales records")
    if args.dry_run:
        return 0

    try:
        imported = sales.bulk_import(BackendClient(), records, batch_size=args.batch_size, on_progress=log_progress)
    except ImportValidationError as e:
        for detail in e.details:
            logger.error(f"   - {detail}")
        return 1
    except BackendAPIError as e:
        logger.error(f"Import failed: {e.message}")
        return 1

    logger.info(f"Import finished: {imported} records")
    return 0


if __name__ == "__main__":
    sys.exit(main())
