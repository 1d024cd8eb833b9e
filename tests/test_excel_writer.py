import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pandas as pd
from openpyxl import load_workbook

from software_report.aggregator import build_report_data
from software_report.exceptions import RenderError
from software_report.excel_writer import (
    build_report_paths,
    machine_file_path,
    write_computers_workbook,
    write_machine_workbooks,
    write_software_workbook,
    write_workbook,
)
from software_report.models import Computer, PrimaryUser, SoftwareRecord


class TestReportPaths(unittest.TestCase):

    def test_paths_derive_from_time_and_script_name(self):
        paths = build_report_paths(datetime(2024, 1, 15, 6, 0, 0), "Software report", "reports")

        self.assertEqual(paths.folder, Path("reports") / "Software report")
        self.assertEqual(paths.base_name, "2024-01-15 060000 - Software report")
        self.assertEqual(paths.software_workbook.name, "2024-01-15 060000 - Software report - Software.xlsx")
        self.assertEqual(paths.computers_workbook.name, "2024-01-15 060000 - Software report - Computers.xlsx")
        self.assertEqual(
            machine_file_path(paths, "PC1"),
            paths.folder / "2024-01-15 060000 - Software report - Machines" / "PC1.xlsx",
        )


class TestExcelWriter(unittest.TestCase):
    """Tests for the workbooks written to a temporary folder."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.paths = build_report_paths(datetime(2024, 1, 15, 6, 0, 0), "Test", self.temp_dir.name)
        self.computers = [
            Computer("PC1", True, "Windows 10 Enterprise",
                     created_at=datetime(2020, 1, 1, tzinfo=timezone.utc)),
            Computer("PC2", True, "Windows 10 Enterprise"),
            Computer("PC3", True, "Windows 11 Pro"),
        ]
        self.software = [
            SoftwareRecord("PC1", "Office", "1.0.1"),
            SoftwareRecord("PC1", "McAffee", "10.0"),
            SoftwareRecord("PC2", "Office", "1.0.1"),
        ]
        self.users = [PrimaryUser("PC1", "bob", "Bob"), PrimaryUser("PC2", "bob", "Bob")]
        self.report_data = build_report_data(self.computers, self.software, self.users, [], [])

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_machine_workbooks(self):
        result = write_machine_workbooks(self.report_data, self.paths)

        self.assertEqual(sorted(result), ["PC1", "PC2"])
        self.assertEqual(sorted(p.name for p in self.paths.machines_folder.iterdir()), ["PC1.xlsx", "PC2.xlsx"])

        sheet = load_workbook(result["PC1"])["Software"]
        self.assertEqual([c.value for c in sheet[1]], ["ProductName", "ProductVersion"])
        self.assertEqual(sheet["A2"].value, "McAffee")
        self.assertEqual(sheet["B2"].value, "10.0")
        self.assertEqual(sheet["B2"].data_type, "s")
        self.assertEqual(sheet["B2"].number_format, "@")
        self.assertEqual(sheet.freeze_panes, "A2")

    def test_software_workbook(self):
        path = write_software_workbook(self.report_data, self.paths)

        workbook = load_workbook(path)
        self.assertEqual(workbook.sheetnames, ["Software", "SoftwareVersions"])
        df = pd.read_excel(path, sheet_name="Software", dtype=str)
        self.assertEqual(df["ProductName"].tolist(), ["McAffee", "Office"])
        self.assertEqual(df["ComputerCount"].tolist(), ["1", "2"])
        self.assertEqual(df["ComputerNames"].tolist(), ["PC1", "PC1, PC2"])
        versions = workbook["SoftwareVersions"]
        self.assertEqual(versions["B3"].value, "1.0.1")
        self.assertEqual(versions["B3"].data_type, "s")

    def test_software_workbook_skipped_without_software(self):
        report_data = build_report_data(self.computers, [], [], [], [])

        self.assertIsNone(write_software_workbook(report_data, self.paths))
        self.assertFalse(self.paths.software_workbook.exists())

    def test_computers_workbook_links_only_existing_machine_files(self):
        machine_files = write_machine_workbooks(self.report_data, self.paths)

        path = write_computers_workbook(self.report_data, self.paths, machine_files)

        workbook = load_workbook(path)
        self.assertEqual(workbook.sheetnames, ["Computers", "MultipleComputersPerUser"])
        sheet = workbook["Computers"]
        header = [c.value for c in sheet[1]]
        link_column = header.index("SoftwareCount") + 1

        rows = {sheet.cell(row=r, column=1).value: sheet.cell(row=r, column=link_column) for r in range(2, 5)}
        self.assertEqual(rows["PC1"].value, 2)
        self.assertEqual(
            rows["PC1"].hyperlink.target,
            "2024-01-15 060000 - Test - Machines/PC1.xlsx",
        )
        self.assertIsNotNone(rows["PC2"].hyperlink)
        self.assertEqual(rows["PC3"].value, 0)
        self.assertIsNone(rows["PC3"].hyperlink)

    def test_computers_workbook_without_multi_computer_users(self):
        report_data = build_report_data(self.computers, self.software, [], [], [])

        path = write_computers_workbook(report_data, self.paths, {})

        workbook = load_workbook(path)
        self.assertEqual(workbook.sheetnames, ["Computers", "MultipleComputersPerUser"])
        users = workbook["MultipleComputersPerUser"]
        self.assertEqual([c.value for c in users[1]], ["DisplayName", "SamAccountName", "ComputerName"])
        self.assertEqual(users.max_row, 1)

    def test_computers_workbook_skipped_without_computers(self):
        report_data = build_report_data([], [], [], [], [])

        self.assertIsNone(write_computers_workbook(report_data, self.paths, {}))

    def test_write_failure_raises_render_error(self):
        df = pd.DataFrame({"A": [1]})

        with patch("software_report.excel_writer.pd.ExcelWriter", side_effect=PermissionError("locked")):
            with self.assertRaises(RenderError):
                write_workbook(self.paths.software_workbook, [("Sheet", df)])


if __name__ == "__main__":
    unittest.main()
