"""
SCCM Inventory Query

Read-only access to the SCCM AdminService (OData over the SCCM WMI classes)
through requests. Provides installed software, primary device users, hardware
facts and network details keyed by computer name.

Queries scoped to a list of computers are split in chunks so the OData
filter stays within URL length limits. Paged results are followed through
'@odata.nextLink'.
"""

import ipaddress
import logging
import os
import socket
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import keyring
import requests
from keyring.errors import KeyringError

from software_report.config import (
    SCCM_ADMINSERVICE_URL,
    SCCM_USER,
    SCCM_KEYRING_SERVICE,
    SCCM_VERIFY_SSL,
    SCCM_TIMEOUT,
    SCCM_FILTER_CHUNK_SIZE,
)
from software_report.exceptions import ConfigError, InventoryQueryError
from software_report.logger import get_logger
from software_report.models import HardwareFacts, NetworkDetails, PrimaryUser, SoftwareRecord

logger = get_logger(__name__)

# SMS_UserMachineRelationship.Types value of a primary user relation
PRIMARY_USER_TYPE = 1

# Win32_SystemEnclosure chassis types
_DESKTOP_CHASSIS = {3, 4, 5, 6, 7, 15, 16, 24, 34, 35}
_LAPTOP_CHASSIS = {8, 9, 10, 11, 12, 14, 18, 21, 31, 32}
_TABLET_CHASSIS = {30}
_ALL_IN_ONE_CHASSIS = {13}
_SERVER_CHASSIS = {17, 23, 28}


def device_type_from_chassis(chassis_types: Iterable[int]) -> str:
    """Map Win32_SystemEnclosure chassis types to a device type, first known type wins."""
    for chassis in chassis_types:
        if chassis in _LAPTOP_CHASSIS:
            return "Laptop"
        if chassis in _DESKTOP_CHASSIS:
            return "Desktop"
        if chassis in _TABLET_CHASSIS:
            return "Tablet"
        if chassis in _ALL_IN_ONE_CHASSIS:
            return "All in One"
        if chassis in _SERVER_CHASSIS:
            return "Server"
    return "Unknown"


def resolve_dns_addresses(computer_name: str) -> List[str]:
    """IPv4 addresses registered in DNS for the computer, empty when it does not resolve."""
    try:
        return sorted(set(socket.gethostbyname_ex(computer_name)[2]))
    except OSError:
        return []


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _chunks(values: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _ipv4_only(addresses: Optional[Iterable[str]]) -> tuple:
    result = []
    for address in addresses or []:
        try:
            if ipaddress.ip_address(address).version == 4:
                result.append(address)
        except ValueError:
            continue
    return tuple(result)


class InventoryAdapter:
    """
    Client for the SCCM AdminService WMI route.

    Attributes:
        base_url (str): AdminService WMI URL, e.g. https://sccm01/AdminService/wmi
        session (requests.Session): HTTP session carrying authentication
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        user: Optional[str] = None,
        keyring_service: Optional[str] = None,
        verify_ssl: bool = SCCM_VERIFY_SSL,
        timeout: int = SCCM_TIMEOUT,
        chunk_size: int = SCCM_FILTER_CHUNK_SIZE,
        session: Optional[requests.Session] = None,
        dns_resolver: Callable[[str], List[str]] = resolve_dns_addresses,
        log: Optional[logging.Logger] = None,
    ):
        self.base_url = (base_url or SCCM_ADMINSERVICE_URL).rstrip("/")
        if not self.base_url:
            raise ConfigError("SCCM_ADMINSERVICE_URL is not set")

        self.timeout = timeout
        self.chunk_size = max(1, chunk_size)
        self.dns_resolver = dns_resolver
        self.logger = log or logger

        if session is None:
            session = requests.Session()
            user = user or SCCM_USER
            if user:
                session.auth = (user, self._get_password(user, keyring_service or SCCM_KEYRING_SERVICE))
        session.verify = verify_ssl
        self.session = session

    def _get_password(self, user: str, keyring_service: str) -> str:
        try:
            password = keyring.get_password(keyring_service, user)
        except KeyringError as e:
            self.logger.warning(f"Could not retrieve password from keyring: {e}")
            password = None

        password = password or os.getenv("SCCM_PASSWORD")
        if not password:
            raise ConfigError(
                f"No password for '{user}' in keyring service '{keyring_service}' "
                f"and SCCM_PASSWORD is not set"
            )
        return password

    def get(self, wmi_class: str, select: Sequence[str], odata_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Query one WMI class and return all rows, following server side paging.

        Raises:
            InventoryQueryError: On HTTP, transport or JSON decoding errors
        """
        url = f"{self.base_url}/{wmi_class}"
        params = {"$select": ",".join(select)}
        if odata_filter:
            params["$filter"] = odata_filter

        rows = []
        while url:
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                response.raise_for_status()
                payload = response.json()
            except requests.RequestException as e:
                raise InventoryQueryError(f"SCCM query on '{wmi_class}' failed: {e}") from e
            except ValueError as e:
                raise InventoryQueryError(f"SCCM returned invalid JSON for '{wmi_class}': {e}") from e

            rows.extend(payload.get("value", []))
            url = payload.get("@odata.nextLink")
            # nextLink already carries the query options
            params = None

        self.logger.debug(f"SCCM '{wmi_class}': {len(rows)} row(s)")
        return rows

    def _get_for_values(
        self,
        wmi_class: str,
        select: Sequence[str],
        field: str,
        values: Sequence[Any],
    ) -> List[Dict[str, Any]]:
        rows = []
        for chunk in _chunks(list(values), self.chunk_size):
            terms = [
                f"{field} eq {_quote(v) if isinstance(v, str) else v}" for v in chunk
            ]
            rows.extend(self.get(wmi_class, select, " or ".join(terms)))
        return rows

    def _systems_by_name(self, computer_names: Sequence[str]) -> List[Dict[str, Any]]:
        return self._get_for_values(
            "SMS_R_System",
            ["ResourceId", "Name", "IPAddresses", "IPSubnets", "ADSiteName"],
            "Name",
            computer_names,
        )

    def query_software(self, computer_names: Sequence[str]) -> List[SoftwareRecord]:
        """Installed software of the given computers."""
        systems = self._systems_by_name(computer_names)
        names_by_id = {system["ResourceId"]: _text(system.get("Name")) for system in systems}
        if not names_by_id:
            return []

        rows = self._get_for_values(
            "SMS_G_System_INSTALLED_SOFTWARE",
            ["ResourceID", "ProductName", "ProductVersion"],
            "ResourceID",
            list(names_by_id),
        )

        software = [
            SoftwareRecord(
                computer_name=names_by_id[row["ResourceID"]],
                product_name=_text(row.get("ProductName")),
                product_version=_text(row.get("ProductVersion")),
            )
            for row in rows
            if row.get("ResourceID") in names_by_id and _text(row.get("ProductName"))
        ]
        self.logger.info(f"SCCM software: {len(software)} record(s) for {len(names_by_id)} computer(s)")
        return software

    def query_primary_users(self) -> List[PrimaryUser]:
        """All active primary device user relations known to SCCM."""
        relations = self.get(
            "SMS_UserMachineRelationship",
            ["ResourceName", "UniqueUserName", "Types", "IsActive"],
            "IsActive eq true",
        )
        users = self.get("SMS_R_User", ["UniqueUserName", "UserName", "FullUserName"])
        display_names = {
            _text(user.get("UniqueUserName")).casefold(): _text(user.get("FullUserName"))
            for user in users
        }

        primary_users = []
        for relation in relations:
            if PRIMARY_USER_TYPE not in (relation.get("Types") or []):
                continue
            unique_name = _text(relation.get("UniqueUserName"))
            primary_users.append(PrimaryUser(
                computer_name=_text(relation.get("ResourceName")),
                sam_account_name=unique_name.split("\\")[-1],
                display_name=display_names.get(unique_name.casefold(), ""),
            ))

        self.logger.info(f"SCCM primary users: {len(primary_users)} relation(s)")
        return primary_users

    def query_hardware(self) -> List[HardwareFacts]:
        """Hardware facts of every computer known to SCCM."""
        systems = self.get("SMS_R_System", ["ResourceId", "Name"])
        computer_systems = self.get(
            "SMS_G_System_COMPUTER_SYSTEM", ["ResourceID", "Manufacturer", "Model"]
        )
        operating_systems = self.get(
            "SMS_G_System_OPERATING_SYSTEM", ["ResourceID", "Caption", "Version"]
        )
        enclosures = self.get("SMS_G_System_SYSTEM_ENCLOSURE", ["ResourceID", "ChassisTypes"])

        def first_by_id(rows):
            result = {}
            for row in rows:
                result.setdefault(row.get("ResourceID"), row)
            return result

        cs_by_id = first_by_id(computer_systems)
        os_by_id = first_by_id(operating_systems)
        enclosure_by_id = first_by_id(enclosures)

        hardware = []
        for system in systems:
            resource_id = system.get("ResourceId")
            cs = cs_by_id.get(resource_id, {})
            os_info = os_by_id.get(resource_id, {})
            chassis = tuple(int(c) for c in enclosure_by_id.get(resource_id, {}).get("ChassisTypes") or [])
            hardware.append(HardwareFacts(
                computer_name=_text(system.get("Name")),
                device_type=device_type_from_chassis(chassis),
                manufacturer=_text(cs.get("Manufacturer")),
                model=_text(cs.get("Model")),
                operating_system=_text(os_info.get("Caption")),
                operating_system_version=_text(os_info.get("Version")),
                chassis_types=chassis,
            ))

        self.logger.info(f"SCCM hardware: {len(hardware)} computer(s)")
        return hardware

    def query_network_details(self, computer_names: Sequence[str]) -> List[NetworkDetails]:
        """SCCM and DNS addresses, subnet and AD site of the given computers."""
        network = []
        for system in self._systems_by_name(computer_names):
            name = _text(system.get("Name"))
            subnets = system.get("IPSubnets") or []
            network.append(NetworkDetails(
                computer_name=name,
                sccm_ip_addresses=_ipv4_only(system.get("IPAddresses")),
                dns_ip_addresses=tuple(self.dns_resolver(name)),
                subnet=_text(subnets[0]) if subnets else "",
                location=_text(system.get("ADSiteName")),
            ))

        self.logger.info(f"SCCM network details: {len(network)} computer(s)")
        return network
