import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from ldap3.core.exceptions import LDAPException

from software_report.directory_adapter import (
    DirectoryAdapter,
    computer_from_entry,
    convert_to_ou_name,
    filter_client_computers,
)
from software_report.exceptions import ConfigError, DirectoryQueryError
from software_report.models import Computer


def entry(name, dn, uac=4096, operating_system="Windows 10 Enterprise"):
    return {
        "type": "searchResEntry",
        "dn": dn,
        "attributes": {
            "name": name,
            "operatingSystem": operating_system,
            "description": [],
            "whenCreated": datetime(2020, 1, 1, tzinfo=timezone.utc),
            "lastLogonTimestamp": datetime(1601, 1, 1, tzinfo=timezone.utc),
            "userAccountControl": uac,
        },
    }


class TestConversions(unittest.TestCase):
    """Tests for the pure LDAP result conversions."""

    def test_convert_to_ou_name(self):
        result = convert_to_ou_name("CN=PC1,OU=Computers,OU=BEL,DC=contoso,DC=net")

        self.assertEqual(result, "contoso.net/BEL/Computers")

    def test_convert_to_ou_name_default_container(self):
        result = convert_to_ou_name("CN=PC1,CN=Computers,DC=contoso,DC=net")

        self.assertEqual(result, "contoso.net/Computers")

    def test_computer_from_entry(self):
        raw = entry("PC1", "CN=PC1,OU=Computers,DC=contoso,DC=net")

        result = computer_from_entry(raw["dn"], raw["attributes"])

        self.assertEqual(result.name, "PC1")
        self.assertTrue(result.enabled)
        self.assertEqual(result.description, "")
        self.assertEqual(result.created_at, datetime(2020, 1, 1, tzinfo=timezone.utc))
        self.assertIsNone(result.last_logon_at)
        self.assertEqual(result.organizational_unit, "contoso.net/Computers")

    def test_disabled_computer(self):
        raw = entry("PC1", "CN=PC1,DC=contoso,DC=net", uac=4096 | 2)

        result = computer_from_entry(raw["dn"], raw["attributes"])

        self.assertFalse(result.enabled)

    def test_filter_client_computers(self):
        computers = [
            Computer("PC1", True, "Windows 10 Enterprise"),
            Computer("PC2", False, "Windows 10 Enterprise"),
            Computer("SRV1", True, "Windows Server 2019 Standard"),
            Computer("PC3", True, ""),
        ]

        result = filter_client_computers(computers)

        self.assertEqual([c.name for c in result], ["PC1", "PC3"])


class TestDirectoryAdapter(unittest.TestCase):
    """Tests for the AD computer query with a mocked ldap3 connection."""

    def setUp(self):
        self.mock_keyring = patch("software_report.directory_adapter.keyring").start()
        self.mock_keyring.get_password.return_value = "secret"
        self.mock_server = patch("software_report.directory_adapter.Server").start()
        self.mock_connection_cls = patch("software_report.directory_adapter.Connection").start()
        self.connection = MagicMock()
        self.mock_connection_cls.return_value = self.connection

        self.adapter = DirectoryAdapter(server="dc01.contoso.net", user="CONTOSO\\svc")

    def tearDown(self):
        patch.stopall()

    def test_missing_server_raises(self):
        with patch("software_report.directory_adapter.AD_SERVER", ""):
            with self.assertRaises(ConfigError):
                DirectoryAdapter(user="CONTOSO\\svc")

    def test_query_computers(self):
        self.connection.extend.standard.paged_search.side_effect = [
            iter([
                entry("PC1", "CN=PC1,OU=A,DC=contoso,DC=net"),
                {"type": "searchResRef", "uri": ["ldap://other"]},
            ]),
            iter([
                entry("pc1", "CN=pc1,OU=A,DC=contoso,DC=net"),
                entry("PC2", "CN=PC2,OU=B,DC=contoso,DC=net"),
            ]),
        ]

        result = self.adapter.query_computers(["OU=A,DC=contoso,DC=net", "OU=B,DC=contoso,DC=net"])

        self.assertEqual([c.name for c in result], ["PC1", "PC2"])
        self.assertEqual(self.connection.extend.standard.paged_search.call_count, 2)
        first_call = self.connection.extend.standard.paged_search.call_args_list[0]
        self.assertEqual(first_call.kwargs["search_base"], "OU=A,DC=contoso,DC=net")
        self.connection.unbind.assert_called_once()

    def test_search_failure_raises(self):
        self.connection.extend.standard.paged_search.side_effect = LDAPException("noSuchObject")

        with self.assertRaises(DirectoryQueryError):
            self.adapter.query_computers(["OU=Missing,DC=contoso,DC=net"])

        self.connection.unbind.assert_called_once()

    def test_bind_failure_raises(self):
        self.mock_connection_cls.side_effect = LDAPException("invalidCredentials")

        with self.assertRaises(DirectoryQueryError):
            self.adapter.query_computers(["OU=A,DC=contoso,DC=net"])

    def test_no_password_raises_config_error(self):
        self.mock_keyring.get_password.return_value = None

        with patch.dict("os.environ", {}, clear=True):
            with self.assertRaises(ConfigError):
                self.adapter.query_computers(["OU=A,DC=contoso,DC=net"])

    def test_password_from_environment(self):
        self.mock_keyring.get_password.return_value = None
        self.connection.extend.standard.paged_search.return_value = iter([])

        with patch.dict("os.environ", {"AD_PASSWORD": "from-env"}):
            self.adapter.query_computers(["OU=A,DC=contoso,DC=net"])

        self.assertEqual(self.mock_connection_cls.call_args.kwargs["password"], "from-env")


if __name__ == "__main__":
    unittest.main()
