"""
Excel Report Writer

This module writes the report tables to Excel workbooks with pandas and openpyxl:
- One workbook per computer with software, in the machines folder
- Software workbook (product aggregate and product + version aggregate)
- Computers workbook (computer overview and users with multiple computers)

Every sheet gets a frozen header row, an auto filter and fitted column widths.
Version columns are written as text. In the computer overview the software
count links to the computer's own workbook, only when that workbook exists.

File names depend only on the run timestamp and the script name, e.g.:
    reports/Software inventory report/2024-01-15 060000 - Software inventory report - Software.xlsx
"""

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence, Tuple

import pandas as pd
from openpyxl.utils import get_column_letter

from software_report.config import (
    REPORTS_DIR,
    DATE_FORMAT_FILENAME,
    MACHINES_FOLDER_SUFFIX,
    SOFTWARE_WORKBOOK_SUFFIX,
    COMPUTERS_WORKBOOK_SUFFIX,
    SHEET_MACHINE_SOFTWARE,
    SHEET_PRODUCTS,
    SHEET_PRODUCT_VERSIONS,
    SHEET_COMPUTERS,
    SHEET_MULTI_COMPUTER_USERS,
    TEXT_COLUMNS,
)
from software_report.exceptions import RenderError
from software_report.logger import get_logger
from software_report.models import (
    ComputerSummaryRow,
    MultiComputerUserRow,
    ProductAggregate,
    ProductVersionAggregate,
    ReportData,
    SoftwareRecord,
)

logger = get_logger(__name__)

MAX_COLUMN_WIDTH = 60
LINK_COLUMN = "SoftwareCount"

COMPUTER_COLUMNS = [
    "ComputerName", "Description", "OU", "OperatingSystem", "Created", "LastLogon",
    "DeviceType", "Manufacturer", "Model", "SccmOperatingSystem", "SccmOperatingSystemVersion",
    "ChassisTypes", "PrimaryUsers", "PrimaryUserSamAccountNames",
    "SccmIpAddresses", "DnsIpAddresses", "Subnet", "Location", LINK_COLUMN,
]


@dataclass(frozen=True)
class ReportPaths:
    folder: Path
    base_name: str
    machines_folder: Path
    software_workbook: Path
    computers_workbook: Path


def build_report_paths(
    report_time: datetime,
    script_name: str,
    reports_dir: Optional[str] = None,
) -> ReportPaths:
    """All output locations of one run, derived from its timestamp and script name."""
    folder = Path(reports_dir or REPORTS_DIR) / script_name
    base_name = f"{report_time.strftime(DATE_FORMAT_FILENAME)} - {script_name}"
    return ReportPaths(
        folder=folder,
        base_name=base_name,
        machines_folder=folder / f"{base_name}{MACHINES_FOLDER_SUFFIX}",
        software_workbook=folder / f"{base_name}{SOFTWARE_WORKBOOK_SUFFIX}",
        computers_workbook=folder / f"{base_name}{COMPUTERS_WORKBOOK_SUFFIX}",
    )


def machine_file_path(paths: ReportPaths, computer_name: str) -> Path:
    safe_name = re.sub(r'[\\/:*?"<>|]', "_", computer_name)
    return paths.machines_folder / f"{safe_name}.xlsx"


# ============================================================================
# Table builders
# ============================================================================

def _excel_datetime(value: Optional[datetime]) -> Optional[datetime]:
    # Excel does not support timezone aware datetimes
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def machine_software_frame(records: Sequence[SoftwareRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [(r.product_name, r.product_version) for r in records],
        columns=["ProductName", "ProductVersion"],
    )


def products_frame(aggregates: Sequence[ProductAggregate]) -> pd.DataFrame:
    return pd.DataFrame(
        [(a.product_name, a.computer_count, ", ".join(a.computer_names)) for a in aggregates],
        columns=["ProductName", "ComputerCount", "ComputerNames"],
    )


def product_versions_frame(aggregates: Sequence[ProductVersionAggregate]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            (a.product_name, a.product_version, a.computer_count, ", ".join(a.computer_names))
            for a in aggregates
        ],
        columns=["ProductName", "ProductVersion", "ComputerCount", "ComputerNames"],
    )


def computers_frame(rows: Sequence[ComputerSummaryRow]) -> pd.DataFrame:
    records = []
    for row in rows:
        computer, hardware, network = row.computer, row.hardware, row.network
        records.append((
            computer.name,
            computer.description,
            computer.organizational_unit,
            computer.operating_system,
            _excel_datetime(computer.created_at),
            _excel_datetime(computer.last_logon_at),
            hardware.device_type,
            hardware.manufacturer,
            hardware.model,
            hardware.operating_system,
            hardware.operating_system_version,
            ", ".join(str(c) for c in hardware.chassis_types),
            "; ".join(u.display_name for u in row.primary_users),
            "; ".join(u.sam_account_name for u in row.primary_users),
            ", ".join(network.sccm_ip_addresses),
            ", ".join(network.dns_ip_addresses),
            network.subnet,
            network.location,
            row.software_count,
        ))
    return pd.DataFrame(records, columns=COMPUTER_COLUMNS)


def multi_computer_users_frame(rows: Sequence[MultiComputerUserRow]) -> pd.DataFrame:
    return pd.DataFrame(
        [(r.display_name, r.sam_account_name, r.computer_name) for r in rows],
        columns=["DisplayName", "SamAccountName", "ComputerName"],
    )


# ============================================================================
# Workbook writing
# ============================================================================

def _format_sheet(worksheet, df: pd.DataFrame, text_columns: Iterable[str]) -> None:
    worksheet.freeze_panes = "A2"
    if len(df.columns):
        worksheet.auto_filter.ref = worksheet.dimensions

    for idx, column in enumerate(df.columns, start=1):
        letter = get_column_letter(idx)
        values = [str(column)] + [str(v) for v in df[column].tolist() if v is not None]
        width = min(max(len(v) for v in values) + 2, MAX_COLUMN_WIDTH)
        worksheet.column_dimensions[letter].width = width

        if column in text_columns:
            for cell in worksheet[letter][1:]:
                cell.number_format = "@"


def _add_links(worksheet, df: pd.DataFrame, links: Dict[int, str]) -> None:
    col_idx = df.columns.get_loc(LINK_COLUMN) + 1
    for row_idx, target in links.items():
        # Row 1 holds the header
        cell = worksheet.cell(row=row_idx + 2, column=col_idx)
        cell.hyperlink = target
        cell.style = "Hyperlink"


def write_workbook(
    path: Path,
    sheets: Sequence[Tuple[str, pd.DataFrame]],
    text_columns: Iterable[str] = TEXT_COLUMNS,
    links: Optional[Dict[str, Dict[int, str]]] = None,
    log: Optional[logging.Logger] = None,
) -> Path:
    """
    Write the given sheets to one workbook.

    Args:
        path: Workbook path, parent folders are created
        sheets: (sheet name, DataFrame) pairs in sheet order
        text_columns: Column names whose values must stay literal text
        links: Per sheet name, row position -> hyperlink target of the link column
        log: Logger to use, defaults to the module logger

    Raises:
        RenderError: If the workbook cannot be written
    """
    log = log or logger
    text_columns = list(text_columns)
    links = links or {}

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, df in sheets:
                df.to_excel(writer, sheet_name=sheet_name, index=False)
                worksheet = writer.sheets[sheet_name]
                _format_sheet(worksheet, df, text_columns)
                if sheet_name in links:
                    _add_links(worksheet, df, links[sheet_name])
    except Exception as e:
        raise RenderError(f"Failed to write workbook '{path}': {str(e)}") from e

    log.debug(f"Workbook written: {path}")
    return path


def write_machine_workbooks(
    report_data: ReportData,
    paths: ReportPaths,
    log: Optional[logging.Logger] = None,
) -> Dict[str, Path]:
    """One workbook per computer with software. Returns computer name -> workbook path."""
    log = log or logger
    machine_files = {}
    for computer_name, records in report_data.software_by_computer.items():
        path = machine_file_path(paths, computer_name)
        write_workbook(path, [(SHEET_MACHINE_SOFTWARE, machine_software_frame(records))], log=log)
        machine_files[computer_name] = path

    log.info(f"Wrote {len(machine_files)} machine workbook(s) to {paths.machines_folder}")
    return machine_files


def write_software_workbook(
    report_data: ReportData,
    paths: ReportPaths,
    log: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """Product and product version aggregates, skipped when no software was found."""
    log = log or logger
    if not report_data.product_aggregates:
        log.info("No software found, software workbook not created")
        return None

    return write_workbook(paths.software_workbook, [
        (SHEET_PRODUCTS, products_frame(report_data.product_aggregates)),
        (SHEET_PRODUCT_VERSIONS, product_versions_frame(report_data.product_version_aggregates)),
    ], log=log)


def write_computers_workbook(
    report_data: ReportData,
    paths: ReportPaths,
    machine_files: Dict[str, Path],
    log: Optional[logging.Logger] = None,
) -> Optional[Path]:
    """
    Computer overview and users with multiple computers.

    The software count of a computer links to its machine workbook if and
    only if that workbook was written. The users sheet is always present,
    with only its header row when no user has more than one computer.
    """
    log = log or logger
    if not report_data.computer_rows:
        log.info("No computers found, computers workbook not created")
        return None

    links = {}
    for row_idx, row in enumerate(report_data.computer_rows):
        machine_file = machine_files.get(row.name)
        if machine_file is not None:
            links[row_idx] = Path(os.path.relpath(machine_file, paths.folder)).as_posix()

    sheets = [
        (SHEET_COMPUTERS, computers_frame(report_data.computer_rows)),
        (SHEET_MULTI_COMPUTER_USERS, multi_computer_users_frame(report_data.multi_computer_users)),
    ]

    return write_workbook(paths.computers_workbook, sheets, links={SHEET_COMPUTERS: links}, log=log)
