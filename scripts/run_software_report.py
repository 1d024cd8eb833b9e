#!/usr/bin/env python3
"""
Scheduled Task Runner for the Software Inventory Report

This script is designed to be executed by cron (or the Windows Task Scheduler)
for the recurring software report.

CRON CONFIGURATION:
-------------------
# Run every Monday at 06:00
0 6 * * 1 /usr/bin/python3 /path/to/project/scripts/run_software_report.py --import-file /path/to/import.txt >> /path/to/project/logs/cron.log 2>&1

IMPORT FILE:
------------
    # Recipients of the report
    MailTo: bob@contoso.com, mike@contoso.com
    # Organizational units to search
    OU=Computers,OU=BEL,OU=EU,DC=contoso,DC=net

ENVIRONMENT VARIABLES:
----------------------
Cron does NOT load .env files from the working directory of the project.
Make sure the variables below are available to the job, or run it from the
project root so python-dotenv picks up the .env file.

REQUIRED ENVIRONMENT VARIABLES:
- AD_SERVER, AD_USER (password in keyring service AD_KEYRING_SERVICE or AD_PASSWORD)
- SCCM_ADMINSERVICE_URL, SCCM_USER (password in keyring or SCCM_PASSWORD)
- SMTP_SERVER, MAIL_FROM or SMTP_USER
- SCRIPT_ADMIN

OPTIONAL:
- LOG_FOLDER (default: logs), REPORTS_DIR (default: reports), SCRIPT_NAME
- SMTP_PORT (default: 587), SMTP_PASSWORD, SMTP_USE_TLS (default: true)

LOGGING:
--------
- Cron output: logs/cron.log (stdout/stderr from this script)
- Application logs: <LOG_FOLDER>/software_report.log
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from software_report.cli import main

if __name__ == "__main__":
    sys.exit(main())
