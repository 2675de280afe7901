import logging

from azure.communication.email import EmailClient

from scholarhub.config import Settings
from scholarhub.errors import UpstreamFailure

logger = logging.getLogger("scholarhub.email")

SIGNATURE = "<p>Best regards,<br>ScholarHub Team</p>"


class EmailSender:
    """Outbound email through Azure Communication Services.

    With no connection string configured, sends are logged and skipped.
    """

    def __init__(self, connection_string: str | None, sender_address: str, client: EmailClient | None = None):
        self.sender_address = sender_address
        self.client = client
        if self.client is None and connection_string:
            self.client = EmailClient.from_connection_string(connection_string)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def send(self, to: str, subject: str, html: str) -> bool:
        if not self.enabled:
            logger.info("Email not configured, skipping send to %s", to)
            return False

        message = {
            "senderAddress": self.sender_address,
            "recipients": {"to": [{"address": to}]},
            "content": {"subject": subject, "html": html},
        }
        try:
            poller = self.client.begin_send(message)
            result = poller.result()
        except Exception as exc:
            raise UpstreamFailure("Failed to send email", detail=f"send to {to}: {exc}") from exc

        status = result.get("status") if isinstance(result, dict) else getattr(result, "status", None)
        if status != "Succeeded":
            raise UpstreamFailure("Failed to send email", detail=f"send to {to} ended with status {status}")
        logger.info("Email '%s' sent to %s", subject, to)
        return True

    def send_deadline_reminder_email(self, to: str, student_name: str, scholarship_name: str, days_left: int) -> bool:
        html = f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <h2>Scholarship Deadline Reminder</h2>
          <p>Dear {student_name},</p>
          <p>The application deadline for <strong>{scholarship_name}</strong> is approaching.</p>
          <p><strong>{days_left} days remaining</strong></p>
          <p>Submit your application before the deadline.</p>
          {SIGNATURE}
        </div>
        """
        return self.send(to, f"Scholarship Deadline Reminder - {scholarship_name}", html)


def build_email_sender(config: Settings) -> EmailSender:
    return EmailSender(config.email_connection_string, config.email_sender)
