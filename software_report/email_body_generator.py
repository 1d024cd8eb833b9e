"""
Email Body Generator Module

This module generates HTML email content for the software inventory report.
The report email body includes:
- Summary with the number of software packages and enabled computers
- Table of computers per device type and operating system
- Number of users that are primary user on more than one computer
- List of searched organizational units
- Attachment explanation
- Footer

The failure email body reports the error to the script administrator.

All HTML is email-client safe (Gmail-compatible).
"""

import html
import logging
from datetime import datetime
from typing import Optional, Sequence

from software_report.config import EMAIL_SUBJECT_TEMPLATE, DATE_FORMAT_DISPLAY
from software_report.logger import get_logger
from software_report.models import DeviceOsCount

logger = get_logger(__name__)


def format_date_for_email(date_value: datetime) -> str:
    """
    Format date value for email display.

    Example: "15-Jan-2024 06:00"
    """
    if isinstance(date_value, datetime):
        return date_value.strftime(DATE_FORMAT_DISPLAY)
    return str(date_value)


def generate_email_subject(product_count: int) -> str:
    """
    Generate email subject line.

    Format: "<N> software packages"
    """
    return EMAIL_SUBJECT_TEMPLATE.format(count=product_count)


def generate_report_email_body(
    product_count: int,
    computer_count: int,
    device_os_counts: Sequence[DeviceOsCount],
    ou_list: Sequence[str],
    report_time: datetime,
    multi_computer_user_count: int = 0,
    attachment_names: Optional[Sequence[str]] = None,
    log: Optional[logging.Logger] = None,
) -> str:
    """
    Generate HTML email body for the software inventory report.

    Args:
        product_count: Number of distinct software products
        computer_count: Number of enabled, non-server computers
        device_os_counts: Computer counts per device type and operating system, sorted
        ou_list: Organizational units that were searched
        report_time: Start time of the run
        multi_computer_user_count: Number of users that are primary user on 2+ computers
        attachment_names: File names of the attached workbooks
        log: Logger to use, defaults to the module logger

    Returns:
        HTML string ready to send via email
    """
    log = log or logger
    log.info("Generating HTML email body")

    table_rows = []
    for item in device_os_counts:
        table_rows.append(f"""
        <tr>
            <td style="padding: 8px; border: 1px solid #ddd;">{html.escape(item.device_type or 'Unknown')}</td>
            <td style="padding: 8px; border: 1px solid #ddd;">{html.escape(item.operating_system or 'Unknown')}</td>
            <td style="padding: 8px; border: 1px solid #ddd; text-align: right;">{item.computer_count}</td>
        </tr>""")

    if not table_rows:
        table_rows.append("""
        <tr>
            <td colspan="3" style="padding: 8px; border: 1px solid #ddd; text-align: center; color: #666;">
                No computers found.
            </td>
        </tr>""")

    table_rows_html = "".join(table_rows)
    ou_list_html = "".join(f"<li>{html.escape(ou)}</li>" for ou in ou_list)

    if attachment_names:
        attachments_html = (
            "<p>Attached to this email are the following workbooks:</p>"
            "<ul style=\"margin-top: 10px; margin-bottom: 20px; padding-left: 20px;\">"
            + "".join(f"<li>{html.escape(name)}</li>" for name in attachment_names)
            + "</ul>"
        )
    else:
        attachments_html = "<p><em>No workbooks were created, nothing was found to report.</em></p>"

    html_body = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #333; margin: 0; padding: 20px;">

    <h2 style="color: #2c3e50; margin-top: 20px; margin-bottom: 10px;">Software Inventory Report</h2>
    <p style="color: #666; margin-bottom: 20px;"><strong>{format_date_for_email(report_time)}</strong></p>

    <p>Found <strong>{product_count}</strong> software packages on <strong>{computer_count}</strong> enabled computers.</p>

    <table style="border-collapse: collapse; margin-bottom: 20px; border: 1px solid #ddd;">
        <thead>
            <tr style="background-color: #333; color: white;">
                <th style="padding: 10px; border: 1px solid #ddd; text-align: left;">Device type</th>
                <th style="padding: 10px; border: 1px solid #ddd; text-align: left;">Operating system</th>
                <th style="padding: 10px; border: 1px solid #ddd; text-align: right;">Computers</th>
            </tr>
        </thead>
        <tbody>
            {table_rows_html}
        </tbody>
    </table>

    <p>Users registered as primary user on more than one computer: <strong>{multi_computer_user_count}</strong></p>

    {attachments_html}

    <p style="margin-top: 20px; margin-bottom: 10px;">Organizational units searched:</p>

    <ul style="margin-top: 10px; margin-bottom: 20px; padding-left: 20px;">
        {ou_list_html}
    </ul>

    <p style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #eee; color: #666; font-size: 12px;">
        <em>This is a system-generated email. Data is collected from Active Directory and SCCM at the time of the run.</em>
    </p>

</body>
</html>
"""

    log.info(f"Generated HTML email body ({len(html_body)} characters)")
    return html_body


def generate_failure_email_body(script_name: str, error: str) -> str:
    """HTML body of the administrator mail sent when the run fails."""
    return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; font-size: 14px; line-height: 1.6; color: #333; margin: 0; padding: 20px;">
    <h2 style="color: #c0392b;">{html.escape(script_name)} failed</h2>
    <p>The scheduled task stopped with the following error:</p>
    <pre style="background-color: #f8f8f8; padding: 10px; border: 1px solid #ddd;">{html.escape(error)}</pre>
    <p style="color: #666; font-size: 12px;"><em>No report was sent to the regular recipients.</em></p>
</body>
</html>
"""
