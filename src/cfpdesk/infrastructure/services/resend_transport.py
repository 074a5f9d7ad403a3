from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import requests

from cfpdesk.application.services.email_template import render_email
from cfpdesk.domain.errors import TransportError

logger = logging.getLogger(__name__)


class ResendMailTransport:
    """Send decision emails via the Resend REST API (no SDK dependency)."""

    API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: str,
        from_email: str,
        *,
        reply_to: Optional[str] = None,
        timeout: float = 15,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.reply_to = reply_to
        self.timeout = timeout

    @classmethod
    def from_env(cls, *, timeout: float = 15) -> Optional["ResendMailTransport"]:
        api_key = os.getenv("CFPDESK_RESEND_API_KEY", "").strip()
        if not api_key:
            return None
        return cls(
            api_key=api_key,
            from_email=os.getenv("CFPDESK_RESEND_FROM", "CFP Team <cfp@conf.zurichjs.com>"),
            reply_to=os.getenv("CFPDESK_RESEND_REPLY_TO") or None,
            timeout=timeout,
        )

    def send(self, to: str, template_type: str, template_data: Dict[str, Any]) -> str:
        subject, html_body, text = render_email(template_type, template_data)
        payload: Dict[str, Any] = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to

        try:
            resp = requests.post(
                self.API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.Timeout as e:
            logger.warning("Resend timed out after %ss for %s", self.timeout, to)
            raise TransportError(f"Mail transport timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.warning("Resend failed for %s: %s", to, e)
            raise TransportError(f"Mail transport rejected the message: {e}") from e
        except ValueError as e:
            raise TransportError("Mail transport returned an unreadable response") from e

        message_id = str(body.get("id") or "")
        if not message_id:
            raise TransportError("Mail transport response carried no message id")
        return message_id


class NullMailTransport:
    """Used when no Resend key is configured; every send fails loudly."""

    def send(self, to: str, template_type: str, template_data: Dict[str, Any]) -> str:
        raise TransportError("Mail transport is not configured (set CFPDESK_RESEND_API_KEY)")
