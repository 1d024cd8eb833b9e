"""
Email Sender Module

This module provides a reusable utility for sending HTML emails with optional attachments.
This is a pure infrastructure module - no email content generation logic.

Uses SMTP for email delivery with support for:
- HTML email body
- Optional file attachments (Excel workbooks)
- One message addressed to all recipients, sent in a single attempt
- High priority flag for failure notifications
- Environment variable-based configuration
"""

import logging
import os
import smtplib
from typing import List, Optional, Tuple
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.mime.base import MIMEBase
from email import encoders

from software_report.config import DEFAULT_SMTP_PORT, MAIL_FROM
from software_report.logger import get_logger

logger = get_logger(__name__)

PRIORITY_HEADERS = {
    "high": {"X-Priority": "1", "Importance": "High"},
    "normal": {},
}


def build_message(
    sender: str,
    to_emails: List[str],
    subject: str,
    html_body: str,
    attachments: Optional[List[str]] = None,
    priority: str = "normal",
    log: Optional[logging.Logger] = None,
) -> MIMEMultipart:
    """
    Create the RFC-compliant MIME structure:

    multipart/mixed (root)
    ├── multipart/alternative (body container)
    │   └── text/html
    └── application/octet-stream (one per attachment)
    """
    log = log or logger
    mixed_msg = MIMEMultipart('mixed')
    mixed_msg['From'] = sender
    mixed_msg['To'] = ", ".join(to_emails)
    mixed_msg['Subject'] = subject
    for header, value in PRIORITY_HEADERS.get(priority, {}).items():
        mixed_msg[header] = value

    alternative_part = MIMEMultipart('alternative')
    alternative_part.attach(MIMEText(html_body, 'html', 'utf-8'))
    mixed_msg.attach(alternative_part)

    for attachment_path in attachments or []:
        with open(attachment_path, 'rb') as f:
            attachment = MIMEBase('application', 'octet-stream')
            attachment.set_payload(f.read())

        encoders.encode_base64(attachment)

        filename = os.path.basename(attachment_path)
        attachment.add_header(
            'Content-Disposition',
            f'attachment; filename="{filename}"'
        )
        mixed_msg.attach(attachment)
        log.debug(f"Attached file: {filename}")

    return mixed_msg


def send_email(
    to_emails: List[str],
    subject: str,
    html_body: str,
    attachments: Optional[List[str]] = None,
    priority: str = "normal",
    log: Optional[logging.Logger] = None,
) -> Tuple[bool, Optional[str]]:
    """
    Send one HTML email with optional attachments to all recipients.

    Args:
        to_emails: List of recipient email addresses
        subject: Email subject line
        html_body: HTML content for email body
        attachments: Optional list of file paths to attach
        priority: 'normal' or 'high'
        log: Logger to use, defaults to the module logger

    Returns:
        Tuple of (success: bool, error_msg: Optional[str])

    Environment Variables Required:
        - SMTP_SERVER: SMTP server address (e.g., 'smtp.contoso.net')
        - SMTP_PORT: SMTP port (optional, defaults to 587)
        - SMTP_USER / SMTP_PASSWORD: Credentials (optional for internal relays)
        - SMTP_USE_TLS: Use STARTTLS (optional, defaults to true)
        - MAIL_FROM: Sender address (optional, defaults to SMTP_USER)
    """
    log = log or logger
    log.info(f"Preparing to send email to {len(to_emails)} recipient(s)")
    log.info(f"Subject: {subject}")
    if attachments:
        log.info(f"Attachments: {', '.join(os.path.basename(a) for a in attachments)}")
    else:
        log.info("Attachments: None")

    if not to_emails:
        error_msg = "Email recipient list is empty"
        log.warning(error_msg)
        return False, error_msg

    for email in to_emails:
        if not email or '@' not in email:
            error_msg = f"Invalid email address: {email}"
            log.error(error_msg)
            return False, error_msg

    for attachment_path in attachments or []:
        if not os.path.isfile(attachment_path):
            error_msg = f"Attachment file not found: {attachment_path}"
            log.error(error_msg)
            return False, error_msg

    smtp_server = os.getenv('SMTP_SERVER')
    smtp_user = os.getenv('SMTP_USER')
    smtp_password = os.getenv('SMTP_PASSWORD')
    smtp_use_tls = os.getenv('SMTP_USE_TLS', 'true').strip().lower() in ('true', '1', 'yes')
    sender = MAIL_FROM or smtp_user

    if not smtp_server:
        error_msg = "SMTP_SERVER environment variable is not set"
        log.error(error_msg)
        return False, error_msg

    if not sender:
        error_msg = "Neither MAIL_FROM nor SMTP_USER environment variable is set"
        log.error(error_msg)
        return False, error_msg

    try:
        smtp_port = int(os.getenv('SMTP_PORT', DEFAULT_SMTP_PORT))
    except ValueError:
        error_msg = f"Invalid SMTP_PORT value '{os.getenv('SMTP_PORT')}'"
        log.error(error_msg)
        return False, error_msg

    log.info(f"SMTP Configuration: {smtp_server}:{smtp_port}")

    try:
        message = build_message(sender, to_emails, subject, html_body, attachments, priority, log=log)

        with smtplib.SMTP(smtp_server, smtp_port) as server:
            if smtp_use_tls:
                server.starttls()
            if smtp_user and smtp_password:
                server.login(smtp_user, smtp_password)
            server.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        error_msg = f"Failed to send email: {str(e)}"
        log.error(error_msg, exc_info=True)
        return False, error_msg

    log.info(f"Email sent successfully to {len(to_emails)} recipient(s)")
    return True, None
