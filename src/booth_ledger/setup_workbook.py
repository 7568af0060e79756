"""Utility for initializing the Booth Ledger master workbook.

The module doubles as a script (``booth-ledger-setup``) and as a library used
by tests or other tooling.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Mapping, Sequence

import openpyxl

from . import core_logic, data_manager
from .constants import SHEET_COLUMNS, SheetName


def create_master_workbook(
    destination: Path,
    *,
    sheet_columns: Mapping[SheetName, Sequence[str]] = SHEET_COLUMNS,
    with_samples: bool = True,
    overwrite: bool = False,
) -> Path:
    """Create the master workbook at ``destination``.

    Every blob sheet is created with a bold header row. When ``with_samples``
    is ``True`` the catalog is populated with the sample products; otherwise
    it starts empty.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is
            ``False``.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing master workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name.value)
        data_manager.write_header(worksheet, columns)

    if with_samples:
        data_manager.store_products(workbook, core_logic.seed_catalog())

    workbook.save(destination)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False, with_samples: bool = True) -> Path:
    """Create the workbook named by ``[System] DataFile`` in ``config_path``."""

    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=config_path.expanduser().resolve().parent)
    return create_master_workbook(
        settings.data_file,
        with_samples=with_samples,
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the Booth Ledger data file")
    parser.add_argument(
        "--config",
        default=data_manager.CONFIG_FILE_NAME,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    parser.add_argument(
        "--empty",
        action="store_true",
        help="Start with an empty catalog instead of the sample products.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Booth Ledger Setup ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force, with_samples=not args.empty)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except KeyError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created master workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
