#!/usr/bin/env python3
"""
Create / update raw materials from an Excel sheet, or export them.
"""
import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from retail_admin.api.backend_client import BackendClient
from retail_admin.shared.errors import BackendAPIError, ImportFileError
from retail_admin.shared.importers import raw_materials

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


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Raw material import / export")
    parser.add_argument("file", type=Path, nargs="?", help="Excel sheet to import")
    parser.add_argument("--export-dir", type=Path, default=None, help="export all raw materials into this directory")
    args = parser.parse_args(argv)

    client = BackendClient()

    if args.export_dir is not None:
        try:
            filename, content = raw_materials.export_raw_materials(client)
        except BackendAPIError as e:
            logger.error(f"Export failed: {e.message}")
            return 1
        args.export_dir.mkdir(parents=True, exist_ok=True)
        target = args.export_dir / filename
        target.write_bytes(content)
        logger.info(f"Exported raw materials to {target}")
        return 0

    if args.file is None or not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    last_logged = [-1]

    def log_progress(pct: int) -> None:
        if pct // 10 != last_logged[0] // 10:
            last_logged[0] = pct
            logger.info(f"Progress: {pct}%")

    try:
        result = raw_materials.import_raw_materials(client, args.file.read_bytes(), args.file.name, on_progress=log_progress)
    except ImportFileError as e:
        logger.error(str(e))
        return 1

    if result.success_count:
        logger.info(f"Successfully imported/updated {result.success_count} materials")
    if result.error_count:
        logger.error(f"Failed to import/update {result.error_count} materials. {result.first_error or ''}")
    if result.skipped_count:
        logger.warning(f"Skipped {result.skipped_count} row(s) due to missing required fields. {result.first_error or ''}")
    return 0 if result.error_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
