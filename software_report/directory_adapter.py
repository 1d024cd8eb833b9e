"""
Active Directory Computer Query

Read-only access to Active Directory through ldap3. Computer objects are
collected from each organizational unit of the import file (subtree search,
paged) and converted to Computer records.

The password of the service account is taken from the system keyring, with the
AD_PASSWORD environment variable as fallback. There is no interactive prompt,
the report runs as a scheduled task.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import keyring
from keyring.errors import KeyringError
from ldap3 import ALL, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.dn import parse_dn

from software_report.config import (
    AD_SERVER,
    AD_USER,
    AD_KEYRING_SERVICE,
    AD_USE_SSL,
    AD_PORT,
    AD_TIMEOUT,
    AD_PAGE_SIZE,
    SERVER_OS_PATTERN,
)
from software_report.exceptions import ConfigError, DirectoryQueryError
from software_report.logger import get_logger
from software_report.models import Computer

logger = get_logger(__name__)

COMPUTER_FILTER = "(objectCategory=computer)"

COMPUTER_ATTRIBUTES = [
    "name",
    "operatingSystem",
    "description",
    "whenCreated",
    "lastLogonTimestamp",
    "userAccountControl",
]

# userAccountControl flag ACCOUNTDISABLE
ACCOUNT_DISABLED = 0x2

# lastLogonTimestamp of a computer that never logged on
_NEVER = datetime(1601, 1, 1, tzinfo=timezone.utc)


def convert_to_ou_name(distinguished_name: str) -> str:
    """
    Convert the distinguished name of an object to the canonical name of its OU.

    Example:
        'CN=PC1,OU=Computers,OU=BEL,DC=contoso,DC=net' -> 'contoso.net/BEL/Computers'
    """
    if not distinguished_name:
        return ""

    try:
        components = parse_dn(distinguished_name, strip=True)
    except LDAPException:
        logger.warning(f"Could not parse distinguished name '{distinguished_name}'")
        return distinguished_name

    domain = [value for attr, value, _ in components if attr.upper() == "DC"]
    containers = [
        value for attr, value, _ in components[1:] if attr.upper() in ("OU", "CN")
    ]

    return "/".join([".".join(domain)] + list(reversed(containers)))


def _single(value: Any) -> Any:
    # ldap3 returns an empty list for attributes not set on the object
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _as_text(value: Any) -> str:
    value = _single(value)
    return "" if value is None else str(value).strip()


def _as_datetime(value: Any) -> Optional[datetime]:
    value = _single(value)
    if not isinstance(value, datetime) or value == _NEVER:
        return None
    return value


def computer_from_entry(distinguished_name: str, attributes: Dict[str, Any]) -> Computer:
    """Build a Computer from the attributes of one LDAP search result."""
    uac = _single(attributes.get("userAccountControl"))
    try:
        enabled = not (int(uac) & ACCOUNT_DISABLED)
    except (TypeError, ValueError):
        enabled = False

    return Computer(
        name=_as_text(attributes.get("name")),
        enabled=enabled,
        operating_system=_as_text(attributes.get("operatingSystem")),
        description=_as_text(attributes.get("description")),
        created_at=_as_datetime(attributes.get("whenCreated")),
        last_logon_at=_as_datetime(attributes.get("lastLogonTimestamp")),
        organizational_unit=convert_to_ou_name(distinguished_name),
    )


def filter_client_computers(
    computers: Iterable[Computer],
    server_pattern: str = SERVER_OS_PATTERN,
) -> List[Computer]:
    """Keep enabled computers that do not run a server operating system."""
    server_regex = re.compile(server_pattern, re.IGNORECASE)
    return [
        computer for computer in computers
        if computer.enabled and not server_regex.search(computer.operating_system)
    ]


class DirectoryAdapter:
    """
    Active Directory adapter for the computer query.

    A fresh connection is opened for every query and unbound afterwards.
    """

    def __init__(
        self,
        server: Optional[str] = None,
        user: Optional[str] = None,
        keyring_service: Optional[str] = None,
        use_ssl: bool = AD_USE_SSL,
        port: Optional[int] = None,
        timeout: int = AD_TIMEOUT,
        page_size: int = AD_PAGE_SIZE,
        log: Optional[logging.Logger] = None,
    ):
        self.server_hostname = server or AD_SERVER
        self.user = user or AD_USER
        self.keyring_service = keyring_service or AD_KEYRING_SERVICE
        self.use_ssl = use_ssl
        self.port = port or AD_PORT
        self.timeout = timeout
        self.page_size = page_size
        self.logger = log or logger

        if not self.server_hostname:
            raise ConfigError("AD_SERVER is not set")
        if not self.user:
            raise ConfigError("AD_USER is not set")

        self._password = None

        self.logger.debug(f"Directory adapter initialized for server: {self.server_hostname}")

    def _get_password(self) -> str:
        if self._password:
            return self._password

        try:
            password = keyring.get_password(self.keyring_service, self.user)
        except KeyringError as e:
            self.logger.warning(f"Could not retrieve password from keyring: {e}")
            password = None

        if password:
            self.logger.debug("Using AD password from keyring")
        else:
            password = os.getenv("AD_PASSWORD")

        if not password:
            raise ConfigError(
                f"No password for '{self.user}' in keyring service "
                f"'{self.keyring_service}' and AD_PASSWORD is not set"
            )

        self._password = password
        return password

    def _create_connection(self) -> Connection:
        try:
            server = Server(
                self.server_hostname,
                use_ssl=self.use_ssl,
                port=self.port,
                get_info=ALL,
                connect_timeout=self.timeout,
            )
            connection = Connection(
                server,
                user=self.user,
                password=self._get_password(),
                auto_bind=True,
                receive_timeout=self.timeout,
            )
        except LDAPException as e:
            raise DirectoryQueryError(
                f"Failed to connect to '{self.server_hostname}': {e}"
            ) from e

        self.logger.info(f"Successfully connected to {self.server_hostname}")
        return connection

    def _search_ou(self, connection: Connection, ou: str) -> List[Computer]:
        computers = []
        try:
            responses = connection.extend.standard.paged_search(
                search_base=ou,
                search_filter=COMPUTER_FILTER,
                search_scope=SUBTREE,
                attributes=COMPUTER_ATTRIBUTES,
                paged_size=self.page_size,
                generator=True,
            )
            for response in responses:
                if response.get("type") != "searchResEntry":
                    continue
                computers.append(
                    computer_from_entry(response["dn"], response.get("attributes", {}))
                )
        except LDAPException as e:
            raise DirectoryQueryError(f"Failed to query computers in OU '{ou}': {e}") from e

        return computers

    def query_computers(self, ou_list: Iterable[str]) -> List[Computer]:
        """
        Get the computer objects in the given organizational units.

        Computers found in more than one OU (nested OUs in the import file)
        are returned once, first occurrence kept.

        Raises:
            DirectoryQueryError: On connection, authentication or search failure
        """
        connection = self._create_connection()
        computers = []
        seen = set()

        try:
            for ou in ou_list:
                found = self._search_ou(connection, ou)
                self.logger.info(f"OU '{ou}': {len(found)} computer(s)")
                for computer in found:
                    key = computer.name.casefold()
                    if key in seen:
                        continue
                    seen.add(key)
                    computers.append(computer)
        finally:
            connection.unbind()
            self.logger.debug("LDAP connection closed")

        return computers
