# depaudit_cli/utilities/notifications.py

import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import List, Optional

import requests

from ..exceptions import NotificationError
from .audit_report.report_assembler import Report

logger = logging.getLogger("depaudit-cli")

WEBHOOK_TIMEOUT = 10  # seconds
SMTP_TIMEOUT = 30  # seconds


@dataclass
class EmailSettings:
    recipients: List[str] = field(default_factory=list)
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    sender: Optional[str] = None
    use_tls: bool = True

    @property
    def configured(self) -> bool:
        return bool(self.recipients and self.smtp_host)


def build_webhook_payload(report: Report) -> dict:
    """Slack-compatible payload: headline text plus one attachment with the finding lines."""
    return {
        "text": f"🚨 Dependency Audit Found Vulnerabilities ({report.total})",
        "attachments": [
            {
                "title": "Vulnerability Summary",
                "text": report.notification_body,
                "color": "danger",
            }
        ],
    }


def build_email_subject(report: Report) -> str:
    return f"Dependency Audit Alert - {report.total} Vulnerabilities Found"


def build_email_body(report: Report) -> str:
    lines = [
        "Dependency Audit Report",
        f"Generated: {report.generated_at}",
        "",
        f"Summary: {report.summary}",
        "",
        "Severity Breakdown:",
    ]
    for severity, count in report.severity_counts.items():
        lines.append(f"  {severity.capitalize()}: {count}")
    lines.extend(["", "Vulnerabilities:", report.notification_body])
    return "\n".join(lines) + "\n"


def send_webhook(webhook_url: str, report: Report) -> None:
    """
    Posts the report summary to a webhook.

    Raises:
        NotificationError: If the request fails or the endpoint answers with an error
    """
    try:
        response = requests.post(webhook_url, json=build_webhook_payload(report), timeout=WEBHOOK_TIMEOUT)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise NotificationError(f"Failed to send webhook notification: {e}", details={"error": str(e)})
    logger.debug(f"Webhook responded with status {response.status_code}")


def send_email(settings: EmailSettings, report: Report) -> None:
    """
    Sends a plain-text alert email over SMTP.

    Raises:
        NotificationError: If the SMTP conversation fails
    """
    message = EmailMessage()
    message["Subject"] = build_email_subject(report)
    message["From"] = settings.sender or settings.smtp_username or "depaudit-cli@localhost"
    message["To"] = ", ".join(settings.recipients)
    message.set_content(build_email_body(report))

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT) as smtp:
            if settings.use_tls:
                smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        raise NotificationError(f"Failed to send email notification: {e}", details={"error": str(e)})


def send_notifications(
    report: Report,
    webhook_url: Optional[str] = None,
    email_settings: Optional[EmailSettings] = None,
    silent: bool = False
) -> List[str]:
    """
    Delivers the report to every configured channel.

    Skipped when silent or when nothing was reported. Delivery failures are
    logged and printed, never raised. Returns the channels that succeeded.
    """
    if silent:
        logger.debug("Notifications suppressed by --silent")
        return []
    if report.is_empty:
        logger.debug("No reported findings; skipping notifications")
        return []

    delivered = []
    if webhook_url:
        try:
            send_webhook(webhook_url, report)
            print("Webhook notification sent.")
            delivered.append("webhook")
        except NotificationError as e:
            logger.error(e.message)
            print("Failed to send webhook notification.")

    if email_settings and email_settings.configured:
        try:
            send_email(email_settings, report)
            print(f"Email notification sent to {len(email_settings.recipients)} recipient(s).")
            delivered.append("email")
        except NotificationError as e:
            logger.error(e.message)
            print("Failed to send email notification.")
    elif email_settings and email_settings.recipients:
        logger.warning("Email recipients configured but no SMTP host; skipping email notification")

    return delivered
