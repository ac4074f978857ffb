from __future__ import annotations

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .outcomes import FAILED, RollbackReport
from .settings import Settings, settings as default_settings


def send_email(subject: str, body: str, cfg: Settings | None = None) -> bool:
    """Send an email if SMTP settings are configured.

    Environment variables:
      - ZDR_ENABLE_EMAIL=true
      - ZDR_SMTP_HOST / ZDR_SMTP_PORT
      - ZDR_SMTP_USER / ZDR_SMTP_PASSWORD
      - ZDR_EMAIL_FROM / ZDR_EMAIL_TO
    """
    s = cfg or default_settings
    if not s.enable_email:
        return False
    if not all([s.smtp_host, s.smtp_port, s.smtp_user, s.smtp_password, s.email_from, s.email_to]):
        return False

    try:
        msg = MIMEMultipart()
        msg["From"] = s.email_from
        msg["To"] = s.email_to
        msg["Subject"] = subject
        msg.attach(MIMEText(body, "plain"))

        server = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=30)
        server.starttls()
        server.login(s.smtp_user, s.smtp_password)
        server.sendmail(s.email_from, [s.email_to], msg.as_string())
        server.quit()
        return True
    except (smtplib.SMTPException, OSError):
        return False


def notify_rollback(report: RollbackReport, cfg: Settings | None = None) -> bool:
    """Mail the run summary when the cutover failed or cleanup was incomplete."""
    if report.ok and report.count(FAILED) == 0:
        return False
    if report.ok:
        subject = f"ROLLBACK PARTIAL: {report.target_version_id} on {report.root_domain}"
    else:
        subject = f"ROLLBACK FAILED: {report.target_version_id} on {report.root_domain}"
    return send_email(subject, "\n".join(report.summary_lines()), cfg)
