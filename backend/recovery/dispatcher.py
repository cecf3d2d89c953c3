# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Recovery channel dispatcher.

Two channels can deliver a reset link:

* ``email``    – rendered locally and sent through SMTP.
* ``whatsapp`` – handed to an external recovery proxy (ACCOUNT_RECOVER_WA_ENDPOINT)
                 which owns the messaging integration.

``check_availability`` and ``dispatch`` are separate so the UI can offer a
choice before anything is sent, and either channel may be missing without
affecting the other.

Neither method raises for configuration or transport problems: availability
falls back to the local default, and delivery returns a DeliveryResult whose
``diagnostic`` says what went wrong.
"""

import smtplib

import httpx
from pydantic import BaseModel

from core.logger import logger, mask_email
from core.results import DeliveryResult
from recovery.mailer import SMTPTransport, build_reset_email

EMAIL = "email"
WHATSAPP = "whatsapp"
METHODS = (EMAIL, WHATSAPP)


class RecoveryMethods(BaseModel):
    email: bool
    whatsapp: bool


class RecoveryDispatcher:
    def __init__(self, settings, http_client: httpx.Client, mail_transport=None):
        self.settings = settings
        self.http = http_client
        self.mail = mail_transport if mail_transport is not None else SMTPTransport(settings)

    # -- configuration ------------------------------------------------------

    def email_configured(self) -> bool:
        s = self.settings
        return bool(s.smtp_host and s.smtp_username and s.smtp_password)

    def whatsapp_configured(self) -> bool:
        return bool(self.settings.account_recover_wa_endpoint)

    def is_configured(self, method: str) -> bool:
        if method == EMAIL:
            return self.email_configured()
        if method == WHATSAPP:
            return self.whatsapp_configured()
        return False

    def default_methods(self) -> RecoveryMethods:
        return RecoveryMethods(email=self.email_configured(), whatsapp=False)

    def reset_url(self, token: str) -> str:
        return f"{self.settings.app_url.rstrip('/')}/reset-password?token={token}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        api_key = self.settings.global_api_key
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
            headers["X-API-Key"] = api_key
        return headers

    def _post(self, payload: dict) -> httpx.Response:
        return self.http.post(
            self.settings.account_recover_wa_endpoint,
            json=payload,
            headers=self._headers(),
            timeout=self.settings.recovery_timeout_seconds,
        )

    # -- availability -------------------------------------------------------

    def check_availability(self, email: str, phone, external_id) -> RecoveryMethods:
        """
        Ask the recovery proxy which channels can reach this user.
        Falls back to the local default on any problem.
        """
        default = self.default_methods()
        if not self.whatsapp_configured():
            return default

        payload = {
            "event": "check",
            "email": email,
            "celular": phone,
            "external_id": external_id,
        }
        try:
            response = self._post(payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Recovery check failed for %s: %s", mask_email(email), exc)
            return default

        if not response.is_success:
            logger.warning(
                "Recovery check endpoint returned %d for %s",
                response.status_code,
                mask_email(email),
            )
            return default

        try:
            result = response.json()
        except ValueError:
            logger.warning("Recovery check endpoint returned non-JSON body")
            return default

        if not isinstance(result, dict):
            logger.warning("Recovery check endpoint returned %s, expected object", type(result).__name__)
            return default

        email_ok = result.get("email")
        return RecoveryMethods(
            email=email_ok if isinstance(email_ok, bool) else default.email,
            whatsapp=result.get("whatsapp") is True,
        )

    # -- delivery -----------------------------------------------------------

    def dispatch(self, method: str, user, token: str) -> DeliveryResult:
        if method == EMAIL:
            result = self._send_email(user, token)
        elif method == WHATSAPP:
            result = self._send_whatsapp(user, token)
        else:
            result = DeliveryResult.failure(f"unsupported recovery method: {method!r}")

        if result.ok:
            logger.info("Reset link sent to %s via %s", mask_email(user.email), method)
        else:
            logger.warning(
                "Reset link NOT sent to %s via %s: %s",
                mask_email(user.email),
                method,
                result.diagnostic,
            )
        return result

    def _send_email(self, user, token: str) -> DeliveryResult:
        if not self.email_configured():
            return DeliveryResult.failure("SMTP not configured")

        message = build_reset_email(
            app_name=self.settings.app_name,
            sender=self.settings.smtp_from,
            recipient=user.email,
            user_name=user.name,
            reset_url=self.reset_url(token),
            ttl_hours=self.settings.reset_token_ttl_hours,
        )
        try:
            self.mail.send(message)
        except (smtplib.SMTPException, OSError) as exc:
            return DeliveryResult.failure(f"SMTP send failed: {exc}")
        return DeliveryResult(ok=True, diagnostic="email sent")

    def _send_whatsapp(self, user, token: str) -> DeliveryResult:
        if not self.whatsapp_configured():
            return DeliveryResult.failure("ACCOUNT_RECOVER_WA_ENDPOINT not configured")

        payload = {
            "event": "recovery",
            "method": WHATSAPP,
            "email": user.email,
            "celular": user.celular,
            "external_id": user.external_id,
            "userName": user.name,
            "token": token,
            "resetUrl": self.reset_url(token),
        }
        try:
            response = self._post(payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return DeliveryResult.failure(f"recovery endpoint unreachable: {exc}")

        if not response.is_success:
            return DeliveryResult.failure(
                f"recovery endpoint returned {response.status_code}: {response.text[:200]}"
            )
        return DeliveryResult(ok=True, diagnostic="whatsapp request accepted")
