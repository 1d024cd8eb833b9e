"""
Main Orchestrator Module

This module orchestrates the complete software inventory report:
1. Load and validate the import file (recipients and OUs)
2. Query enabled, non-server computers in Active Directory
3. Query SCCM for software, primary users, hardware and network details
4. Join and aggregate the data
5. Write the Excel workbooks
6. Send the summary email with the workbooks attached

Any failure stops the run. The error is logged and mailed to the script
administrator; the regular recipients receive nothing.

This is pure orchestration/glue code - no business logic.
All business logic lives in the individual modules.
"""

import logging
import time
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from software_report.aggregator import build_report_data
from software_report.config import (
    SCRIPT_NAME,
    SCRIPT_ADMIN,
    FAILURE_SUBJECT,
    INCLUDE_UNMATCHED_SOFTWARE,
)
from software_report.directory_adapter import DirectoryAdapter, filter_client_computers
from software_report.email_body_generator import (
    format_date_for_email,
    generate_email_subject,
    generate_failure_email_body,
    generate_report_email_body,
)
from software_report.email_sender import send_email
from software_report.exceptions import NotificationError
from software_report.excel_writer import (
    ReportPaths,
    build_report_paths,
    write_computers_workbook,
    write_machine_workbooks,
    write_software_workbook,
)
from software_report.import_file import load_import_file
from software_report.inventory_adapter import InventoryAdapter
from software_report.logger import get_logger, log_file_path
from software_report.models import ReportData

logger = get_logger(__name__)

Mailer = Callable[..., Tuple[bool, Optional[str]]]


@dataclass
class ReportResult:
    report_data: ReportData
    paths: ReportPaths
    machine_files: Dict[str, Path] = field(default_factory=dict)
    attachments: List[Path] = field(default_factory=list)
    email_sent: bool = False


def run_software_report_pipeline(
    import_file_path: str,
    script_name: str = SCRIPT_NAME,
    report_time: Optional[datetime] = None,
    reports_dir: Optional[str] = None,
    directory: Optional[DirectoryAdapter] = None,
    inventory: Optional[InventoryAdapter] = None,
    mailer: Mailer = send_email,
    dry_run_email: bool = False,
    include_unmatched_software: bool = INCLUDE_UNMATCHED_SOFTWARE,
    log: Optional[logging.Logger] = None,
) -> ReportResult:
    """
    Run the report end-to-end and raise on the first failure.

    Args:
        import_file_path: Path to the import file with MailTo and the OUs
        script_name: Logical name of the run, used in file names
        report_time: Timestamp of the run, defaults to now
        reports_dir: Root folder for the workbooks
        directory: Active Directory adapter, created from settings when None
        inventory: SCCM adapter, created from settings when None
        mailer: Function with the signature of send_email
        dry_run_email: If True, skip email sending (log only)
        include_unmatched_software: Count software of unreported computers in the aggregates
        log: Logger to use, defaults to the module logger

    Returns:
        ReportResult with the derived data and the written files

    Raises:
        SoftwareReportError: ConfigError, DirectoryQueryError, InventoryQueryError,
            RenderError or NotificationError
    """
    log = log or logger
    report_time = report_time or datetime.now()

    # Step 1: Import file (validated before any query)
    log.info("STEP 1: Loading import file...")
    import_file = load_import_file(import_file_path, log=log)
    log.info("✓ Step 1 completed: Import file loaded")
    log.info("")

    # Step 2: Active Directory
    log.info("STEP 2: Querying computers in Active Directory...")
    directory = directory or DirectoryAdapter(log=log)
    all_computers = directory.query_computers(list(import_file.ou_list))
    computers = filter_client_computers(all_computers)
    log.info(f"Found {len(all_computers)} computer(s), "
             f"{len(computers)} enabled non-server computer(s)")
    log.info("✓ Step 2 completed: Computers retrieved")
    log.info("")

    # Step 3: SCCM
    log.info("STEP 3: Querying SCCM inventory...")
    computer_names = [computer.name for computer in computers]
    if computer_names:
        inventory = inventory or InventoryAdapter(log=log)
        software = inventory.query_software(computer_names)
        primary_users = inventory.query_primary_users()
        hardware = inventory.query_hardware()
        network = inventory.query_network_details(computer_names)
    else:
        log.warning("No enabled computers found. Skipping SCCM queries.")
        software, primary_users, hardware, network = [], [], [], []
    log.info(f"Retrieved data: Software={len(software)}, PrimaryUsers={len(primary_users)}, "
             f"Hardware={len(hardware)}, Network={len(network)}")
    log.info("✓ Step 3 completed: Inventory retrieved")
    log.info("")

    # Step 4: Join & aggregate
    log.info("STEP 4: Joining and aggregating data...")
    report_data = build_report_data(
        computers=computers,
        software=software,
        primary_users=primary_users,
        hardware=hardware,
        network=network,
        include_unmatched_software=include_unmatched_software,
        log=log,
    )
    log.info("✓ Step 4 completed: Data aggregated")
    log.info("")

    # Step 5: Workbooks
    log.info("STEP 5: Writing Excel workbooks...")
    paths = build_report_paths(report_time, script_name, reports_dir)
    machine_files = write_machine_workbooks(report_data, paths, log=log)
    software_workbook = write_software_workbook(report_data, paths, log=log)
    computers_workbook = write_computers_workbook(report_data, paths, machine_files, log=log)
    attachments = [p for p in (software_workbook, computers_workbook) if p is not None]
    log.info(f"✓ Step 5 completed: {len(machine_files)} machine workbook(s), "
             f"{len(attachments)} report workbook(s)")
    log.info("")

    result = ReportResult(
        report_data=report_data,
        paths=paths,
        machine_files=machine_files,
        attachments=attachments,
    )

    # Step 6: Email
    log.info("STEP 6: Sending email...")
    subject = generate_email_subject(report_data.product_count)
    html_body = generate_report_email_body(
        product_count=report_data.product_count,
        computer_count=report_data.computer_count,
        device_os_counts=report_data.device_os_counts,
        ou_list=import_file.ou_list,
        report_time=report_time,
        multi_computer_user_count=len({
            row.sam_account_name.casefold() for row in report_data.multi_computer_users
        }),
        attachment_names=[p.name for p in attachments],
        log=log,
    )

    if dry_run_email:
        log.info("DRY RUN MODE: Email sending skipped (dry_run_email=True)")
        log.info(f"Would send email to {len(import_file.mail_to)} recipient(s)")
        log.info(f"Subject: {subject}")
    else:
        success, error = mailer(
            to_emails=list(import_file.mail_to),
            subject=subject,
            html_body=html_body,
            attachments=[str(p) for p in attachments],
            log=log,
        )
        if not success:
            raise NotificationError(f"Failed to send report email: {error}")
        result.email_sent = True

    log.info("✓ Step 6 completed: Email sent (or skipped in dry run)")
    log.info("")

    return result


def notify_failure(
    script_name: str,
    error: str,
    script_admin: Optional[str] = None,
    mailer: Mailer = send_email,
    log: Optional[logging.Logger] = None,
) -> bool:
    """Mail the error to the script administrator. Returns True when the mail was sent."""
    log = log or logger
    script_admin = script_admin or SCRIPT_ADMIN

    if not script_admin:
        log.error("SCRIPT_ADMIN is not set. Failure notification not sent.")
        return False

    success, send_error = mailer(
        to_emails=[script_admin],
        subject=FAILURE_SUBJECT,
        html_body=generate_failure_email_body(script_name, error),
        attachments=None,
        priority="high",
        log=log,
    )
    if not success:
        log.error(f"Failed to send failure notification to {script_admin}: {send_error}")
        return False

    log.info(f"Failure notification sent to {script_admin}")
    return True


def run_software_report(
    import_file_path: str,
    script_name: str = SCRIPT_NAME,
    script_admin: Optional[str] = None,
    mailer: Mailer = send_email,
    log: Optional[logging.Logger] = None,
    **pipeline_kwargs,
) -> Tuple[bool, Optional[object]]:
    """
    Run the report with the top-level failure handling of the scheduled task.

    Returns:
        Tuple of (success: bool, result)
        - success: True if the report was generated and mailed
        - result: ReportResult on success, error message on failure
    """
    log = log or logger
    report_time = pipeline_kwargs.pop("report_time", None) or datetime.now()
    started = time.monotonic()

    log.info("=" * 70)
    log.info(f"Starting {script_name}")
    log.info("=" * 70)
    log.info(f"Import file: {import_file_path}")
    log.info(f"Report time: {format_date_for_email(report_time)}")
    log.info(f"Log file: {log_file_path()}")
    log.info("=" * 70)
    log.info("")

    try:
        result = run_software_report_pipeline(
            import_file_path,
            script_name=script_name,
            report_time=report_time,
            mailer=mailer,
            log=log,
            **pipeline_kwargs,
        )
    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        log.error(f"{script_name} failed: {error_msg}", exc_info=True)
        notify_failure(
            script_name,
            f"{error_msg}\n\n{traceback.format_exc()}",
            script_admin=script_admin,
            mailer=mailer,
            log=log,
        )
        return False, error_msg

    log.info("=" * 70)
    log.info(f"{script_name} completed successfully in {time.monotonic() - started:.1f} seconds")
    log.info("=" * 70)
    log.info(f"Products: {result.report_data.product_count}")
    log.info(f"Computers: {result.report_data.computer_count}")
    log.info(f"Machine workbooks: {len(result.machine_files)}")
    log.info(f"Attachments: {[p.name for p in result.attachments]}")
    log.info(f"Email sent: {'Yes' if result.email_sent else 'No (dry run)'}")
    log.info("=" * 70)

    return True, result
