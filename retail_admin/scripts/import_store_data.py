#!/usr/bin/env python3
"""
Bulk import stores from an Excel / CSV sheet into the backend.
"""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from retail_admin.api.backend_client import BackendClient
from retail_admin.shared.importers import stores
from retail_admin.shared.importers.progress import BatchProgress
from retail_admin.shared.utils.spreadsheet import validate_file_for_import

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


def log_progress(progress: BatchProgress) -> None:
    if progress.is_complete:
        logger.info(
            f"Done: {progress.processed_stores}/{progress.total_stores} stores, "
            f"{progress.success_count} ok, {progress.error_count} failed"
        )
    else:
        logger.info(
            f"Batch {progress.current_batch}/{progress.total_batches} "
            f"({progress.processed_stores}/{progress.total_stores} stores sent)"
        )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Bulk import stores")
    parser.add_argument("file", type=Path, help=".xlsx / .xls / .csv store sheet")
    parser.add_argument("--batch-size", type=int, default=stores.DEFAULT_BATCH_SIZE)
    parser.add_argument("--max-batch-size", type=int, default=stores.MAX_BATCH_SIZE)
    parser.add_argument("--delay", type=float, default=None, help="seconds to wait between batches")
    parser.add_argument("--template", action="store_true", help="write the import template to FILE and exit")
    args = parser.parse_args(argv)

    if args.template:
        args.file.write_bytes(stores.build_store_template())
        logger.info(f"Template written to {args.file}")
        return 0

    if not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    data = args.file.read_bytes()
    is_valid, error = validate_file_for_import(args.file.name, len(data))
    if not is_valid:
        logger.error(error)
        return 1

    result = stores.process_bulk_import(
        BackendClient(),
        data,
        args.file.name,
        on_progress=log_progress,
        batch_size=args.batch_size,
        max_batch_size=args.max_batch_size,
        delay=args.delay,
    )
    log = logger.info if result.success else logger.error
    log(result.message)
    for err in result.errors:
        logger.error(f"   - {err}")
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
