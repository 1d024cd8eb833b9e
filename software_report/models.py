"""
Data Model

Typed records for everything the report reads from Active Directory and SCCM,
and for the rows derived from them. All records are immutable and rebuilt on
every run.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Computer:
    """Computer object from Active Directory."""
    name: str
    enabled: bool
    operating_system: str = ""
    description: str = ""
    created_at: Optional[datetime] = None
    last_logon_at: Optional[datetime] = None
    organizational_unit: str = ""


@dataclass(frozen=True)
class SoftwareRecord:
    computer_name: str
    product_name: str
    product_version: str = ""


@dataclass(frozen=True)
class PrimaryUser:
    computer_name: str
    sam_account_name: str
    display_name: str = ""


@dataclass(frozen=True)
class HardwareFacts:
    computer_name: str
    device_type: str = ""
    manufacturer: str = ""
    model: str = ""
    operating_system: str = ""
    operating_system_version: str = ""
    chassis_types: Tuple[int, ...] = ()


@dataclass(frozen=True)
class NetworkDetails:
    computer_name: str
    sccm_ip_addresses: Tuple[str, ...] = ()
    dns_ip_addresses: Tuple[str, ...] = ()
    subnet: str = ""
    location: str = ""


@dataclass(frozen=True)
class ProductAggregate:
    product_name: str
    computer_count: int
    computer_names: Tuple[str, ...]


@dataclass(frozen=True)
class ProductVersionAggregate:
    product_name: str
    product_version: str
    computer_count: int
    computer_names: Tuple[str, ...]


@dataclass(frozen=True)
class ComputerSummaryRow:
    """One overview row per reported computer."""
    computer: Computer
    hardware: HardwareFacts
    network: NetworkDetails
    primary_users: Tuple[PrimaryUser, ...]
    software_count: int

    @property
    def name(self) -> str:
        return self.computer.name


@dataclass(frozen=True)
class MultiComputerUserRow:
    sam_account_name: str
    display_name: str
    computer_name: str


@dataclass(frozen=True)
class DeviceOsCount:
    device_type: str
    operating_system: str
    computer_count: int


@dataclass(frozen=True)
class ReportData:
    """Everything the join & aggregate step derives for one run."""
    software_by_computer: Dict[str, Tuple[SoftwareRecord, ...]] = field(default_factory=dict)
    product_aggregates: List[ProductAggregate] = field(default_factory=list)
    product_version_aggregates: List[ProductVersionAggregate] = field(default_factory=list)
    computer_rows: List[ComputerSummaryRow] = field(default_factory=list)
    multi_computer_users: List[MultiComputerUserRow] = field(default_factory=list)
    device_os_counts: List[DeviceOsCount] = field(default_factory=list)

    @property
    def product_count(self) -> int:
        return len(self.product_aggregates)

    @property
    def computer_count(self) -> int:
        return len(self.computer_rows)
