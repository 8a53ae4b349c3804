import asyncio
from typing import Optional, Set

from social_graph.config import settings
from social_graph.utils.email_sender import EmailSender, create_email_sender
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)


def render_friend_request_email(sender_name: str, site_url: str) -> str:
    return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
          <div style="background-color: #f5f5f5; padding: 20px; text-align: center;">
            <h1 style="color: #333; margin: 0;">Trader's Journal</h1>
            <p style="color: #666; margin: 5px 0 0 0;">Friend Request</p>
          </div>
          <div style="padding: 20px; border: 1px solid #ddd; border-top: none;">
            <h2 style="color: #333; margin-top: 0;">You have a new friend request!</h2>
            <p style="color: #333; font-size: 16px;">
              <strong>{sender_name}</strong> has sent you a friend request on Trader's Journal.
            </p>
            <div style="text-align: center; margin: 30px 0;">
              <a href="{site_url.rstrip('/')}/friends"
                 style="background-color: #007bff; color: white; padding: 12px 24px; text-decoration: none; border-radius: 5px; display: inline-block;">
                View Friend Request
              </a>
            </div>
          </div>
        </div>
    """


class FriendRequestNotifier:
    """Fire-and-forget friend request emails.

    Delivery runs in a worker thread on the running event loop. Nothing here
    ever raises into the caller: failures are logged and dropped.
    """

    def __init__(self, email_sender: Optional[EmailSender] = None, enabled: Optional[bool] = None,
                 site_url: Optional[str] = None):
        self.enabled = settings.NOTIFICATIONS_ENABLED if enabled is None else enabled
        self.site_url = site_url or settings.SITE_URL
        self._email_sender = email_sender
        self._tasks: Set[asyncio.Task] = set()

    @property
    def email_sender(self) -> EmailSender:
        if self._email_sender is None:
            self._email_sender = create_email_sender()
        return self._email_sender

    def notify_friend_request(self, recipient_email: Optional[str], sender_name: Optional[str]) -> Optional[asyncio.Task]:
        if not self.enabled:
            return None
        if not recipient_email:
            logger.info("Recipient has no email address; skipping friend request email")
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; friend request email not sent")
            return None

        task = loop.create_task(self._deliver(recipient_email, sender_name or "A trader"))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, recipient_email: str, sender_name: str) -> None:
        try:
            await asyncio.to_thread(
                self.email_sender.send_email,
                recipient_email,
                f"New Friend Request from {sender_name}",
                render_friend_request_email(sender_name, self.site_url),
            )
        except Exception as e:
            logger.warning(f"Friend request email to {recipient_email} failed: {e}")

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used at shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
