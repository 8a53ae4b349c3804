from abc import ABC, abstractmethod
from typing import Any
from social_graph.utils.logger import get_logger
import requests
from social_graph.config import settings

logger = get_logger(__name__)

class EmailSender(ABC):
    """Delivers one HTML email; the friend-request notifier is the only caller."""

    @abstractmethod
    def send_email(self, to_email: str, subject: str, html_content: str) -> Any:
        pass

class MailgunEmailSender(EmailSender):
    def __init__(self, api_key: str, domain: str, from_address: str, base_url: str):
        self.api_key = api_key
        self.messages_url = f"{base_url.rstrip('/')}/v3/{domain}/messages"
        self.from_address = from_address

    def send_email(self, to_email: str, subject: str, html_content: str) -> Any:
        resp = requests.post(
            self.messages_url,
            auth=("api", self.api_key),
            data={"from": self.from_address, "to": to_email, "subject": subject, "html": html_content},
            timeout=10,
        )
        if resp.ok:
            logger.info("Friend request email sent via Mailgun to %s", to_email)
            return resp.json()
        logger.error("Mailgun send failed: %s %s", resp.status_code, resp.text)
        raise RuntimeError(f"Mailgun send email failed: {resp.status_code}")

# Used when no provider is configured (local development, tests)
class LoggingEmailSender(EmailSender):
    def send_email(self, to_email: str, subject: str, html_content: str) -> Any:
        logger.info(f"Friend request email not sent (no provider) to={to_email} subject={subject!r}")
        return {"message": "Email logged (no provider configured)"}

def create_email_sender() -> EmailSender:
    """Build the sender selected by EMAIL_PROVIDER."""
    provider = (settings.EMAIL_PROVIDER or "logging").lower()
    if provider == "mailgun" and settings.MAILGUN_API_KEY and settings.MAILGUN_DOMAIN:
        return MailgunEmailSender(
            api_key=settings.MAILGUN_API_KEY,
            domain=settings.MAILGUN_DOMAIN,
            from_address=f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>",
            base_url=settings.MAILGUN_BASE_URL,
        )
    if provider == "mailgun":
        logger.warning("Mailgun selected but not configured; friend request emails will only be logged")
    return LoggingEmailSender()
