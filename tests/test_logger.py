import logging
import os
import tempfile
import unittest

from software_report.logger import ROOT_LOGGER_NAME, configure_logging, get_logger, log_file_path


class TestLogger(unittest.TestCase):
    """Tests for the package wide log configuration."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.logs_dir = os.path.join(self.temp_dir.name, "logs")

    def tearDown(self):
        configure_logging()
        self.temp_dir.cleanup()

    def test_folder_created_on_first_record(self):
        configure_logging(self.logs_dir)

        self.assertFalse(os.path.exists(self.logs_dir))

        get_logger("software_report.aggregator").debug("first record")

        with open(os.path.join(self.logs_dir, "software_report.log"), encoding="utf-8") as f:
            self.assertIn("DEBUG - software_report.aggregator - first record", f.read())

    def test_reconfigure_replaces_handlers(self):
        configure_logging(os.path.join(self.temp_dir.name, "first"))
        configure_logging(self.logs_dir)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        self.assertEqual(len(root.handlers), 2)
        self.assertEqual(str(log_file_path().parent), self.logs_dir)

    def test_module_loggers_share_package_handlers(self):
        logger = get_logger("software_report.excel_writer")

        self.assertEqual(logger.handlers, [])
        self.assertIs(logger.parent, logging.getLogger(ROOT_LOGGER_NAME))

    def test_foreign_name_placed_under_package(self):
        self.assertEqual(get_logger("run").name, "software_report.run")


if __name__ == "__main__":
    unittest.main()
