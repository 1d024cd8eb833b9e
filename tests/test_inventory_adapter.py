import unittest
from unittest.mock import MagicMock

import requests

from software_report.exceptions import InventoryQueryError
from software_report.inventory_adapter import InventoryAdapter, device_type_from_chassis

BASE_URL = "https://sccm01.contoso.net/AdminService/wmi"


def response(rows, next_link=None):
    mock_response = MagicMock()
    payload = {"value": rows}
    if next_link:
        payload["@odata.nextLink"] = next_link
    mock_response.json.return_value = payload
    return mock_response


class TestDeviceType(unittest.TestCase):

    def test_known_chassis_types(self):
        self.assertEqual(device_type_from_chassis([10]), "Laptop")
        self.assertEqual(device_type_from_chassis([3]), "Desktop")
        self.assertEqual(device_type_from_chassis([30]), "Tablet")
        self.assertEqual(device_type_from_chassis([2, 9]), "Laptop")

    def test_unknown_chassis_type(self):
        self.assertEqual(device_type_from_chassis([]), "Unknown")
        self.assertEqual(device_type_from_chassis([2]), "Unknown")


class TestInventoryAdapter(unittest.TestCase):
    """Tests for the SCCM AdminService queries with a mocked HTTP session."""

    def setUp(self):
        self.session = MagicMock()
        self.dns_resolver = MagicMock(return_value=["10.0.0.5"])
        self.adapter = InventoryAdapter(
            base_url=BASE_URL,
            session=self.session,
            chunk_size=2,
            dns_resolver=self.dns_resolver,
        )

    def test_get_follows_next_link(self):
        self.session.get.side_effect = [
            response([{"Name": "PC1"}], next_link=f"{BASE_URL}/SMS_R_System?$skip=1"),
            response([{"Name": "PC2"}]),
        ]

        result = self.adapter.get("SMS_R_System", ["Name"])

        self.assertEqual(result, [{"Name": "PC1"}, {"Name": "PC2"}])
        first, second = self.session.get.call_args_list
        self.assertEqual(first.args[0], f"{BASE_URL}/SMS_R_System")
        self.assertEqual(first.kwargs["params"], {"$select": "Name"})
        self.assertEqual(second.args[0], f"{BASE_URL}/SMS_R_System?$skip=1")
        self.assertIsNone(second.kwargs["params"])

    def test_http_error_raises(self):
        failed = MagicMock()
        failed.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        self.session.get.return_value = failed

        with self.assertRaises(InventoryQueryError):
            self.adapter.get("SMS_R_System", ["Name"])

    def test_connection_error_raises(self):
        self.session.get.side_effect = requests.ConnectionError("unreachable")

        with self.assertRaises(InventoryQueryError):
            self.adapter.query_hardware()

    def test_invalid_json_raises(self):
        invalid = MagicMock()
        invalid.json.side_effect = ValueError("No JSON")
        self.session.get.return_value = invalid

        with self.assertRaises(InventoryQueryError):
            self.adapter.get("SMS_R_System", ["Name"])

    def test_query_software(self):
        self.session.get.side_effect = [
            response([{"ResourceId": 1, "Name": "PC1"}, {"ResourceId": 2, "Name": "PC2"}]),
            response([{"ResourceId": 3, "Name": "PC3"}]),
            response([
                {"ResourceID": 1, "ProductName": "Office", "ProductVersion": "16.0"},
                {"ResourceID": 2, "ProductName": "", "ProductVersion": "1"},
            ]),
            response([{"ResourceID": 3, "ProductName": "7-Zip", "ProductVersion": None}]),
        ]

        result = self.adapter.query_software(["PC1", "PC2", "PC'3"])

        self.assertEqual(
            [(r.computer_name, r.product_name, r.product_version) for r in result],
            [("PC1", "Office", "16.0"), ("PC3", "7-Zip", "")],
        )
        name_filter = self.session.get.call_args_list[1].kwargs["params"]["$filter"]
        self.assertEqual(name_filter, "Name eq 'PC''3'")
        software_filter = self.session.get.call_args_list[2].kwargs["params"]["$filter"]
        self.assertEqual(software_filter, "ResourceID eq 1 or ResourceID eq 2")

    def test_query_software_unknown_computers(self):
        self.session.get.return_value = response([])

        self.assertEqual(self.adapter.query_software(["PC1"]), [])
        self.assertEqual(self.session.get.call_count, 1)

    def test_query_primary_users(self):
        self.session.get.side_effect = [
            response([
                {"ResourceName": "PC1", "UniqueUserName": "CONTOSO\\bob", "Types": [1], "IsActive": True},
                {"ResourceName": "PC2", "UniqueUserName": "CONTOSO\\bob", "Types": [2], "IsActive": True},
            ]),
            response([
                {"UniqueUserName": "contoso\\bob", "UserName": "bob", "FullUserName": "Bob Lee"},
            ]),
        ]

        result = self.adapter.query_primary_users()

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].computer_name, "PC1")
        self.assertEqual(result[0].sam_account_name, "bob")
        self.assertEqual(result[0].display_name, "Bob Lee")

    def test_query_hardware(self):
        self.session.get.side_effect = [
            response([{"ResourceId": 1, "Name": "PC1"}, {"ResourceId": 2, "Name": "PC2"}]),
            response([{"ResourceID": 1, "Manufacturer": "Lenovo", "Model": "T14"}]),
            response([{"ResourceID": 1, "Caption": "Microsoft Windows 10 Enterprise", "Version": "10.0.19045"}]),
            response([
                {"ResourceID": 1, "ChassisTypes": [10]},
                {"ResourceID": 1, "ChassisTypes": [3]},
            ]),
        ]

        result = self.adapter.query_hardware()

        self.assertEqual(len(result), 2)
        self.assertEqual(result[0].device_type, "Laptop")
        self.assertEqual(result[0].manufacturer, "Lenovo")
        self.assertEqual(result[0].operating_system_version, "10.0.19045")
        self.assertEqual(result[0].chassis_types, (10,))
        self.assertEqual(result[1].device_type, "Unknown")
        self.assertEqual(result[1].model, "")

    def test_query_network_details(self):
        self.session.get.return_value = response([{
            "ResourceId": 1,
            "Name": "PC1",
            "IPAddresses": ["10.0.0.5", "fe80::1"],
            "IPSubnets": ["10.0.0.0"],
            "ADSiteName": "Brussels",
        }])

        result = self.adapter.query_network_details(["PC1"])

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].sccm_ip_addresses, ("10.0.0.5",))
        self.assertEqual(result[0].dns_ip_addresses, ("10.0.0.5",))
        self.assertEqual(result[0].subnet, "10.0.0.0")
        self.assertEqual(result[0].location, "Brussels")
        self.dns_resolver.assert_called_once_with("PC1")


if __name__ == "__main__":
    unittest.main()
