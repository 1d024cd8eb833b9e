"""
Command line entry point of the software inventory report.

Exit codes:
    0 - report generated and mailed
    1 - the run failed, the script administrator was notified
"""

import argparse
import sys
from typing import List, Optional

from software_report.config import LOGS_DIR, SCRIPT_ADMIN, SCRIPT_NAME, REPORTS_DIR
from software_report.logger import configure_logging, get_logger
from software_report.orchestrator import run_software_report


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Report the software installed on the computers of the given OUs"
    )
    parser.add_argument("--import-file", required=True,
                        help="Text file with the MailTo line and one OU per line")
    parser.add_argument("--script-name", default=SCRIPT_NAME,
                        help="Logical name of the task, used in file names (default: %(default)s)")
    parser.add_argument("--log-folder", default=LOGS_DIR,
                        help="Folder for the log file (default: LOG_FOLDER or %(default)s)")
    parser.add_argument("--reports-dir", default=REPORTS_DIR,
                        help="Root folder for the workbooks (default: %(default)s)")
    parser.add_argument("--script-admin", default=SCRIPT_ADMIN,
                        help="Address receiving failure notifications (default: SCRIPT_ADMIN)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Generate the workbooks but do not send the report email")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_folder)
    log = get_logger("software_report.run")

    success, result = run_software_report(
        args.import_file,
        script_name=args.script_name,
        script_admin=args.script_admin,
        log=log,
        reports_dir=args.reports_dir,
        dry_run_email=args.dry_run,
    )

    if not success:
        print(f"{args.script_name} failed: {result}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
