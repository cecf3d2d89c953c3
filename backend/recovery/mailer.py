# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Outbound mail: the password-reset message template and the SMTP transport.

The transport is a tiny object with a single ``send(message)`` method so the
dispatcher can be handed a recording fake in tests.
"""

import html
import smtplib
from datetime import datetime
from email.message import EmailMessage


class SMTPTransport:
    """Deliver EmailMessage objects through the configured SMTP relay."""

    def __init__(self, settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.secure = settings.smtp_secure
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.timeout = settings.smtp_timeout_seconds

    def send(self, message: EmailMessage) -> None:
        """Raises ``smtplib.SMTPException`` / ``OSError`` on failure."""
        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

        with server:
            if not self.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(message)


def _hours_label(hours) -> str:
    return "1 hour" if hours == 1 else f"{hours} hours"


def build_reset_email(
    *,
    app_name: str,
    sender: str,
    recipient: str,
    user_name: str,
    reset_url: str,
    ttl_hours,
) -> EmailMessage:
    """Plaintext body plus an HTML alternative with a tappable button."""
    expires = _hours_label(ttl_hours)
    year = datetime.now().year

    message = EmailMessage()
    message["Subject"] = f"Password recovery - {app_name}"
    message["From"] = sender
    message["To"] = recipient

    message.set_content(
        f"Hello, {user_name}!\n\n"
        "We received a request to reset the password for your account. "
        "If you did not make this request, you can ignore this email.\n\n"
        "To reset your password, open the link below:\n"
        f"{reset_url}\n\n"
        f"This link expires in {expires}.\n\n"
        f"The {app_name} team\n"
    )

    safe_name = html.escape(user_name)
    safe_app = html.escape(app_name)
    safe_url = html.escape(reset_url, quote=True)
    message.add_alternative(
        f"""\
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 0; background-color: #0a0a0a;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #0a0a0a; padding: 40px 20px;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background: #1a1a2e; border-radius: 16px;">
          <tr>
            <td style="padding: 40px 40px 20px; text-align: center;">
              <h1 style="color: #ffffff; margin: 0; font-size: 28px;">{safe_app}</h1>
            </td>
          </tr>
          <tr>
            <td style="padding: 20px 40px;">
              <h2 style="color: #ffffff; margin: 0 0 16px; font-size: 22px;">Hello, {safe_name}!</h2>
              <p style="color: #c9c9d9; font-size: 16px; line-height: 1.6;">
                We received a request to reset the password for your account.
                If you did not make this request, you can ignore this email.
              </p>
              <p style="text-align: center; padding: 20px 0;">
                <a href="{safe_url}" style="display: inline-block; background: #667eea; color: #ffffff; text-decoration: none; padding: 14px 32px; border-radius: 8px; font-weight: 600;">
                  Reset password
                </a>
              </p>
              <p style="color: #8b8ba7; font-size: 14px; line-height: 1.6;">
                This link expires in <strong style="color: #c9c9d9;">{expires}</strong>.
                If the button does not work, copy and paste this link into your browser:
              </p>
              <p style="color: #667eea; font-size: 13px; word-break: break-all;">{safe_url}</p>
            </td>
          </tr>
          <tr>
            <td style="padding: 30px 40px; border-top: 1px solid rgba(255,255,255,0.1);">
              <p style="color: #6b6b80; margin: 0; font-size: 12px; text-align: center;">
                &copy; {year} {safe_app}. All rights reserved.
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
""",
        subtype="html",
    )
    return message
