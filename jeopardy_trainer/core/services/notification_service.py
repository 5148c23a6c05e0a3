"""
Outbound email notifications

Two messages exist: "new registration pending approval" to the admin and
"your account was approved" to the user. Delivery is best-effort: every
failure is logged and reported as ``False``, never raised to the caller.

Backends (``[email] backend`` or ``EMAIL_BACKEND``):
- resend: POST to the Resend HTTP API with httpx
- log: write the message to the log only
- disabled: do nothing
"""

from html import escape
from typing import Any, Dict, Optional

import httpx

from ..exceptions import EmailDeliveryError
from .logging import get_logging_service
from .settings_config_service import get_settings_service

BACKENDS = ("resend", "log", "disabled")


class NotificationService:
    """Best-effort transactional email"""

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.config = config or get_settings_service().get_email_config()
        self._client = client
        self.logging_service = get_logging_service()

    @property
    def backend(self) -> str:
        backend = (self.config.get("backend") or "disabled").lower()
        return backend if backend in BACKENDS else "disabled"

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.get("timeout_seconds", 10.0))
        return self._client

    def _deliver(self, to: str, subject: str, html: str) -> None:
        response = self.client.post(
            self.config["api_url"],
            json={
                "from": self.config["from_address"],
                "to": [to],
                "subject": subject,
                "html": html,
            },
            headers={"Authorization": f"Bearer {self.config['api_key']}"},
        )
        if response.status_code >= 400:
            raise EmailDeliveryError(
                f"Email provider returned {response.status_code}: {response.text[:200]}"
            )

    def send(self, kind: str, to: Optional[str], subject: str, html: str) -> bool:
        """Send one message; True only when the provider accepted it"""
        backend = self.backend
        if backend == "disabled":
            self.logging_service.log_email_event("skipped", kind, reason="disabled")
            return False
        if not to:
            self.logging_service.log_email_event("skipped", kind, reason="no recipient")
            return False
        if backend == "log":
            self.logging_service.log_email_event("logged", kind, to=to, subject=subject)
            return True
        if not self.config.get("api_key"):
            self.logging_service.log_email_event(
                "skipped", kind, reason="RESEND_API_KEY not set"
            )
            return False

        try:
            self._deliver(to, subject, html)
        except (httpx.HTTPError, EmailDeliveryError) as e:
            self.logging_service.log_email_event("failed", kind, to=to, error=str(e))
            return False

        self.logging_service.log_email_event("sent", kind, to=to)
        return True

    def send_new_user_notification(self, username: str, email: str, user_id: int) -> bool:
        admin_email = self.config.get("admin_email")
        base_url = self.config.get("base_url", "").rstrip("/")
        html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #060CE9;">New User Registration</h2>
  <p>A new user has registered and is awaiting approval:</p>
  <p><strong>Username:</strong> {escape(username)}</p>
  <p><strong>Email:</strong> {escape(email)}</p>
  <p><strong>User ID:</strong> {user_id}</p>
  <p>To approve this user, visit <a href="{base_url}/admin">the admin dashboard</a>.</p>
</div>
"""
        return self.send(
            "new_user", admin_email, "New User Registration Pending Approval", html
        )

    def send_approval_notification(self, username: str, email: str) -> bool:
        base_url = self.config.get("base_url", "").rstrip("/")
        html = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #060CE9;">Account Approved!</h2>
  <p>Hi {escape(username)},</p>
  <p>Your Jeopardy Trainer account has been approved. You can now
  <a href="{base_url}/login">log in</a> and start practicing.</p>
  <p>Happy studying!</p>
</div>
"""
        return self.send("approval", email, "Your Account Has Been Approved!", html)

    def close(self):
        if self._client is not None:
            self._client.close()


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        _notification_service = NotificationService()
    return _notification_service


def reset_notification_service() -> None:
    global _notification_service
    if _notification_service is not None:
        _notification_service.close()
    _notification_service = None
