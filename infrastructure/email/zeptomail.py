"""ZeptoMail implementation of Notifier.

Sends plain-text bodies (with a minimal escaped HTML alternative) through the
ZeptoMail HTTP API using the shared async HttpClient.
"""

import html

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"


def _as_html(body: str) -> str:
    return "<p>" + html.escape(body).replace("\n", "<br>") + "</p>"


class ZeptoMailNotifier:
    def __init__(self, settings: EmailSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    async def send(self, contact: str, subject: str, body: str) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": contact, "name": contact}}],
            "subject": subject,
            "htmlbody": _as_html(body),
            "textbody": body,
        }

        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"

        headers = {"Authorization": token, "Content-Type": "application/json"}

        try:
            response = await self._http.post_json(
                _ZEPTO_API_URL, payload=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=contact, subject=subject)
                return True
            log.error(
                "email_sent_failed",
                to_email=contact,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=contact,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
