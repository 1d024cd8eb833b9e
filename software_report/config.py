"""
Configuration file for the software inventory report.

All configurable values must be defined here - no hardcoded values in logic files.
Update these values as needed without modifying the implementation code.

IMPORTANT: Sensitive values (SMTP credentials, AD/SCCM accounts) are read from environment variables.
Set these in your .env file or system environment before running the pipeline.
"""

import os
import logging

from dotenv import load_dotenv

load_dotenv()  # this loads variables from .env into os.environ

# Set up logger for configuration warnings
_logger = logging.getLogger(__name__)


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name, str(default))
    try:
        return int(value)
    except ValueError:
        _logger.warning(f"Invalid {name} value '{value}'. Using default: {default}.")
        return default


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name, "").strip().lower()
    if not value:
        return default
    return value in ("true", "1", "yes")


# ============================================================================
# Run Identity
# ============================================================================

# Logical name of the scheduled task, used in file names and failure mails
# Expected format in .env: SCRIPT_NAME=Software inventory report
SCRIPT_NAME = os.getenv("SCRIPT_NAME", "Software inventory report")

# Administrator who receives failure notifications
# Expected format in .env: SCRIPT_ADMIN=admin@company.com
SCRIPT_ADMIN = os.getenv("SCRIPT_ADMIN", "")

if not SCRIPT_ADMIN:
    _logger.warning(
        "SCRIPT_ADMIN environment variable is not set. "
        "Failure notifications cannot be delivered."
    )

# ============================================================================
# Import File
# ============================================================================

# Lines starting with this marker (after leading whitespace) are ignored
COMMENT_MARKER = "#"

# Directive holding the comma-separated recipient list
MAIL_TO_DIRECTIVE = "MailTo"

# ============================================================================
# Active Directory Configuration
# ============================================================================

# Expected format in .env: AD_SERVER=dc01.contoso.net
AD_SERVER = os.getenv("AD_SERVER", "")

# Expected format in .env: AD_USER=CONTOSO\\svc-report
AD_USER = os.getenv("AD_USER", "")

# Keyring service holding the AD password for AD_USER
AD_KEYRING_SERVICE = os.getenv("AD_KEYRING_SERVICE", "software_report_ad")

AD_USE_SSL = _get_bool("AD_USE_SSL", True)
AD_PORT = _get_int("AD_PORT", 636 if AD_USE_SSL else 389)

# AD is slow on large OUs, keep a long timeout
AD_TIMEOUT = _get_int("AD_TIMEOUT", 600)
AD_PAGE_SIZE = _get_int("AD_PAGE_SIZE", 1000)

# Computers whose operating system matches this pattern are not reported
SERVER_OS_PATTERN = os.getenv("SERVER_OS_PATTERN", "server")

# ============================================================================
# SCCM AdminService Configuration
# ============================================================================

# Expected format in .env: SCCM_ADMINSERVICE_URL=https://sccm01.contoso.net/AdminService/wmi
SCCM_ADMINSERVICE_URL = os.getenv("SCCM_ADMINSERVICE_URL", "")
SCCM_USER = os.getenv("SCCM_USER", "")
SCCM_KEYRING_SERVICE = os.getenv("SCCM_KEYRING_SERVICE", "software_report_sccm")
SCCM_VERIFY_SSL = _get_bool("SCCM_VERIFY_SSL", True)
SCCM_TIMEOUT = _get_int("SCCM_TIMEOUT", 120)

# Number of computer names combined in one OData filter
SCCM_FILTER_CHUNK_SIZE = _get_int("SCCM_FILTER_CHUNK_SIZE", 50)

# ============================================================================
# Aggregation Policy
# ============================================================================

# Software of computers outside the reported set still counts in the
# product aggregates (aggregate-then-filter)
INCLUDE_UNMATCHED_SOFTWARE = _get_bool("INCLUDE_UNMATCHED_SOFTWARE", True)

# ============================================================================
# Email Configuration
# ============================================================================

# Email subject template, {count} is the number of distinct products
EMAIL_SUBJECT_TEMPLATE = "{count} software packages"

# Subject of the administrator mail sent when the run fails
FAILURE_SUBJECT = "FAILURE"

# Sender address, defaults to SMTP_USER when not set
MAIL_FROM = os.getenv("MAIL_FROM", "")

# ============================================================================
# SMTP Configuration
# ============================================================================

# SMTP settings are read from environment variables for security:
# - SMTP_SERVER: SMTP server address (e.g., 'smtp.contoso.net')
# - SMTP_PORT: SMTP port (default: 587)
# - SMTP_USER: SMTP username (optional for internal relays)
# - SMTP_PASSWORD: SMTP password
# - SMTP_USE_TLS: Use STARTTLS (default: true)

# Default SMTP port (used if SMTP_PORT environment variable is not set)
DEFAULT_SMTP_PORT = 587

# ============================================================================
# File Paths and Directories
# ============================================================================

# Directory for generated workbooks, a sub folder per script name is created
REPORTS_DIR = os.getenv("REPORTS_DIR", "reports")

# Directory for log files
LOGS_DIR = os.getenv("LOG_FOLDER", "logs")

# Log file name
LOG_FILENAME = "software_report.log"

# ============================================================================
# Report File Naming
# ============================================================================

# Timestamp prefix of every file produced by one run
DATE_FORMAT_FILENAME = "%Y-%m-%d %H%M%S"

# Date format for display in email
DATE_FORMAT_DISPLAY = "%d-%b-%Y %H:%M"

MACHINES_FOLDER_SUFFIX = " - Machines"
SOFTWARE_WORKBOOK_SUFFIX = " - Software.xlsx"
COMPUTERS_WORKBOOK_SUFFIX = " - Computers.xlsx"

# Sheet names (Excel limits sheet names to 31 characters)
SHEET_MACHINE_SOFTWARE = "Software"
SHEET_PRODUCTS = "Software"
SHEET_PRODUCT_VERSIONS = "SoftwareVersions"
SHEET_COMPUTERS = "Computers"
SHEET_MULTI_COMPUTER_USERS = "MultipleComputersPerUser"

# Columns written as literal text so versions like 1.0.1 are not coerced
TEXT_COLUMNS = ["ProductVersion"]
