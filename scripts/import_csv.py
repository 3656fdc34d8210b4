"""CLI entry point for map-driven CSV imports.

Usage:
    python -m scripts.import_csv --db-url sqlite:///data.db --file data.csv --map atlas.json \
        [--map-name NAME] [--delimiter ,] [--header] [--no-transaction] [--reconcile]

The map file holds either a single map or an atlas ({"maps": [...]}).
"""

import argparse
import json
import logging
import os
import sys

from csvimp import Atlas, CsvSource, ImportMap, MapConfigurationError, create_service
from csvimp import reconcile_fields, run_import

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def load_map(path: str, map_name: str | None) -> ImportMap:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise MapConfigurationError(f"{path} must hold a JSON object, not {type(data).__name__}")

    if "maps" not in data:
        return ImportMap.from_dict(data)

    atlas = Atlas.from_dict(data)
    if map_name:
        return atlas.map(map_name)
    names = atlas.map_names()
    if len(names) != 1:
        raise MapConfigurationError(
            f"The atlas holds {len(names)} maps; choose one with --map-name: {', '.join(names)}"
        )
    return atlas.map(names[0])


def main() -> None:
    parser = argparse.ArgumentParser(description="Import a CSV file into a table using a map")
    parser.add_argument(
        "--db-url",
        default=os.environ.get("CSVIMP_DB_URL"),
        help="Database URL (sqlite:/// or postgresql://); defaults to $CSVIMP_DB_URL",
    )
    parser.add_argument("--file", required=True, help="Path to CSV file")
    parser.add_argument("--map", required=True, help="JSON file with a map or an atlas")
    parser.add_argument("--map-name", help="Map to use when the file holds an atlas")
    parser.add_argument("--delimiter", help="Field delimiter; defaults to the map's")
    parser.add_argument("--header", action="store_true", help="First row holds column headers")
    parser.add_argument(
        "--no-transaction",
        action="store_true",
        help="Commit every statement on its own instead of running in one transaction",
    )
    parser.add_argument(
        "--reconcile",
        action="store_true",
        help="Drop map fields that are not columns of the target table",
    )
    args = parser.parse_args()

    if not args.db_url:
        logger.error("No database given. Use --db-url or set CSVIMP_DB_URL.")
        sys.exit(2)

    try:
        import_map = load_map(args.map, args.map_name)
    except (OSError, ValueError, KeyError) as e:
        logger.error("Could not load map from %s: %s", args.map, e)
        sys.exit(2)

    source = CsvSource.from_file(
        args.file,
        delimiter=args.delimiter or import_map.delimiter,
        has_header_row=args.header,
    )

    service = create_service(args.db_url)
    service.connect()
    try:
        if args.reconcile:
            import_map = reconcile_fields(service, import_map)
        report = run_import(
            service, import_map, source, use_transaction=not args.no_transaction
        )
    except MapConfigurationError as e:
        logger.error("Import not started: %s", e)
        sys.exit(2)
    finally:
        service.close()

    logger.info("Done. %s", json.dumps(report.to_dict()))
    sys.exit(0 if report.successful else 1)


if __name__ == "__main__":
    main()
