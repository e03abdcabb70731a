"""Bootstrap an empty Batch Ledger workbook.

Available as the ``ledger-setup`` console script and importable by tests that
need a fresh workbook on disk.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Mapping, Optional, Sequence
import sys

import openpyxl
from openpyxl.styles import Font

from .data_manager import ConfigSettings, parse_settings, read_config, sheet_columns

CONFIG_FILE = "config.ini"


def load_settings(config_path: Path) -> ConfigSettings:
    """Read the settings needed to create the workbook.

    A relative ``DataFile`` is resolved against the directory holding the
    config file, the same way ``ledger-cli`` resolves it.
    """

    parser = read_config(config_path)
    return parse_settings(parser, base_path=config_path.parent)


def create_master_workbook(
    destination: Path,
    *,
    columns: Optional[Mapping[str, Sequence[str]]] = None,
    overwrite: bool = False,
) -> Path:
    """Write a workbook with one header-only sheet per ledger entity.

    Raises:
        FileExistsError: If ``destination`` exists and ``overwrite`` is false.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing ledger workbook: {destination}")

    destination.parent.mkdir(parents=True, exist_ok=True)
    if columns is None:
        columns = sheet_columns()

    workbook = openpyxl.Workbook()
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    header_font = Font(bold=True)
    for sheet_name, headers in columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, header in enumerate(headers, start=1):
            cell = worksheet.cell(row=1, column=column_index, value=header)
            cell.font = header_font
        worksheet.freeze_panes = "A2"

    workbook.save(destination)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    settings = load_settings(config_path)
    return create_master_workbook(settings.data_file, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ledger-setup", description="Initialize the Batch Ledger workbook")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``ledger-setup``."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except (FileNotFoundError, KeyError) as exc:
        print(f"[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except OSError as exc:
        print(f"[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"[SUCCESS] Created ledger workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
