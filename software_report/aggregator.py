"""
Join & Aggregate Engine

This module joins the Active Directory computers with the SCCM datasets and
builds every table of the report:
- Per computer software listing
- Software aggregate by product name
- Software aggregate by product name and version
- Computer overview rows
- Users that are primary user on more than one computer
- Computer count per device type and operating system (email summary)

Computer names and SAM account names are matched case-insensitively.
Lists of computer names inside an aggregate are distinct and sorted
case-insensitively.

This module is pure data processing - no queries, file or email logic.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

import pandas as pd

from software_report.config import INCLUDE_UNMATCHED_SOFTWARE
from software_report.logger import get_logger
from software_report.models import (
    Computer,
    ComputerSummaryRow,
    DeviceOsCount,
    HardwareFacts,
    MultiComputerUserRow,
    NetworkDetails,
    PrimaryUser,
    ProductAggregate,
    ProductVersionAggregate,
    ReportData,
    SoftwareRecord,
)

logger = get_logger(__name__)

T = TypeVar("T")


def _key(name: str) -> str:
    return name.casefold()


def _sorted_names(names: Iterable[str]) -> Tuple[str, ...]:
    return tuple(sorted(names, key=lambda n: (_key(n), n)))


def index_by_computer(
    records: Iterable[T],
    description: str,
    log: Optional[logging.Logger] = None,
) -> Dict[str, T]:
    """
    Map computer name (case-folded) to its record, keeping the first record per computer.
    """
    log = log or logger
    index = {}
    duplicates = 0
    for record in records:
        key = _key(record.computer_name)
        if key in index:
            duplicates += 1
            continue
        index[key] = record
    if duplicates:
        log.debug(f"{description}: ignored {duplicates} duplicate record(s), first match kept")
    return index


def group_software_by_computer(
    computers: Sequence[Computer],
    software: Iterable[SoftwareRecord],
) -> Dict[str, Tuple[SoftwareRecord, ...]]:
    """
    Software listing per computer, for computers with at least one record.

    Keys are the computer names as known in AD, in name order. Each listing
    is sorted by product name (case-insensitive, stable on ties).
    """
    by_computer = defaultdict(list)
    for record in software:
        by_computer[_key(record.computer_name)].append(record)

    listings = {}
    for computer in sorted(computers, key=lambda c: (_key(c.name), c.name)):
        records = by_computer.get(_key(computer.name))
        if records and computer.name not in listings:
            listings[computer.name] = tuple(
                sorted(records, key=lambda r: _key(r.product_name))
            )
    return listings


def _software_frame(software: Sequence[SoftwareRecord]) -> pd.DataFrame:
    df = pd.DataFrame(
        [(r.product_name, r.product_version, r.computer_name) for r in software],
        columns=["ProductName", "ProductVersion", "ComputerName"],
    )
    df["ComputerKey"] = df["ComputerName"].str.casefold()
    return df


def build_product_aggregates(software: Sequence[SoftwareRecord]) -> List[ProductAggregate]:
    """One row per distinct product name, sorted by product name."""
    if not software:
        return []

    df = _software_frame(software)
    df = df.drop_duplicates(subset=["ProductName", "ComputerKey"])
    grouped = df.groupby("ProductName", sort=False)["ComputerName"].agg(list)

    aggregates = []
    for product_name, names in grouped.items():
        computer_names = _sorted_names(names)
        aggregates.append(ProductAggregate(
            product_name=product_name,
            computer_count=len(computer_names),
            computer_names=computer_names,
        ))

    return sorted(aggregates, key=lambda a: (_key(a.product_name), a.product_name))


def build_product_version_aggregates(software: Sequence[SoftwareRecord]) -> List[ProductVersionAggregate]:
    """One row per distinct product name and version pair, sorted by that pair."""
    if not software:
        return []

    df = _software_frame(software)
    df = df.drop_duplicates(subset=["ProductName", "ProductVersion", "ComputerKey"])
    grouped = df.groupby(["ProductName", "ProductVersion"], sort=False)["ComputerName"].agg(list)

    aggregates = []
    for (product_name, product_version), names in grouped.items():
        computer_names = _sorted_names(names)
        aggregates.append(ProductVersionAggregate(
            product_name=product_name,
            product_version=product_version,
            computer_count=len(computer_names),
            computer_names=computer_names,
        ))

    return sorted(
        aggregates,
        key=lambda a: (_key(a.product_name), a.product_name, _key(a.product_version), a.product_version),
    )


def find_multi_computer_users(
    computers: Sequence[Computer],
    primary_users: Iterable[PrimaryUser],
) -> List[MultiComputerUserRow]:
    """
    Users registered as primary user on two or more of the given computers.

    Rows are sorted by display name, then computer name.
    """
    computer_keys = {_key(c.name) for c in computers}

    by_user = defaultdict(dict)
    for user in primary_users:
        computer_key = _key(user.computer_name)
        if computer_key not in computer_keys:
            continue
        by_user[_key(user.sam_account_name)].setdefault(computer_key, user)

    rows = [
        MultiComputerUserRow(
            sam_account_name=user.sam_account_name,
            display_name=user.display_name,
            computer_name=user.computer_name,
        )
        for users in by_user.values() if len(users) >= 2
        for user in users.values()
    ]

    return sorted(rows, key=lambda r: (_key(r.display_name), _key(r.computer_name)))


def count_by_device_and_os(rows: Sequence[ComputerSummaryRow]) -> List[DeviceOsCount]:
    """Number of computers per device type and AD operating system pair."""
    if not rows:
        return []

    df = pd.DataFrame(
        [(row.hardware.device_type, row.computer.operating_system) for row in rows],
        columns=["DeviceType", "OperatingSystem"],
    )
    counts = df.groupby(["DeviceType", "OperatingSystem"], sort=True).size()

    return [
        DeviceOsCount(device_type=device_type, operating_system=operating_system, computer_count=int(count))
        for (device_type, operating_system), count in counts.items()
    ]


def build_report_data(
    computers: Sequence[Computer],
    software: Sequence[SoftwareRecord],
    primary_users: Sequence[PrimaryUser],
    hardware: Sequence[HardwareFacts],
    network: Sequence[NetworkDetails],
    include_unmatched_software: bool = INCLUDE_UNMATCHED_SOFTWARE,
    log: Optional[logging.Logger] = None,
) -> ReportData:
    """
    Join the five datasets on computer name and derive all report tables.

    Args:
        computers: Enabled, non-server computers from AD
        software: Installed software records
        primary_users: Primary device user relations (all, filtered here)
        hardware: Hardware facts (all, first record per computer used)
        network: Network details (first record per computer used)
        include_unmatched_software: Count software of computers that are not
            in the report in the product aggregates
        log: Logger to use, defaults to the module logger

    Returns:
        ReportData with every derived table
    """
    log = log or logger

    computer_keys = {_key(c.name) for c in computers}
    unmatched = [r for r in software if _key(r.computer_name) not in computer_keys]
    if unmatched:
        log.warning(
            f"{len(unmatched)} software record(s) belong to computers outside the report"
            f"{'' if include_unmatched_software else ' and are excluded from the aggregates'}"
        )

    aggregate_source = list(software) if include_unmatched_software else [
        r for r in software if _key(r.computer_name) in computer_keys
    ]

    software_by_computer = group_software_by_computer(computers, software)
    product_aggregates = build_product_aggregates(aggregate_source)
    product_version_aggregates = build_product_version_aggregates(aggregate_source)

    hardware_index = index_by_computer(hardware, "Hardware", log)
    network_index = index_by_computer(network, "Network details", log)

    users_by_computer = defaultdict(list)
    for user in primary_users:
        users_by_computer[_key(user.computer_name)].append(user)

    computer_rows = []
    for computer in sorted(computers, key=lambda c: (_key(c.name), c.name)):
        key = _key(computer.name)
        computer_rows.append(ComputerSummaryRow(
            computer=computer,
            hardware=hardware_index.get(key, HardwareFacts(computer_name=computer.name)),
            network=network_index.get(key, NetworkDetails(computer_name=computer.name)),
            primary_users=tuple(users_by_computer.get(key, [])),
            software_count=len(software_by_computer.get(computer.name, ())),
        ))

    multi_computer_users = find_multi_computer_users(computers, primary_users)

    log.info(f"Aggregated {len(software)} software record(s): "
             f"{len(product_aggregates)} product(s), "
             f"{len(product_version_aggregates)} product version(s), "
             f"{len(software_by_computer)}/{len(computer_rows)} computer(s) with software, "
             f"{len(multi_computer_users)} multi computer user row(s)")

    return ReportData(
        software_by_computer=software_by_computer,
        product_aggregates=product_aggregates,
        product_version_aggregates=product_version_aggregates,
        computer_rows=computer_rows,
        multi_computer_users=multi_computer_users,
        device_os_counts=count_by_device_and_os(computer_rows),
    )
