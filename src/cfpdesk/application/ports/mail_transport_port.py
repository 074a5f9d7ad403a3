"""MailTransportPort: outbound email delivery."""

from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class MailTransportPort(Protocol):
    def send(self, to: str, template_type: str, template_data: Dict[str, Any]) -> str:
        """Deliver one email and return the provider message id.

        Raises TransportError on rejection or timeout.
        """
        ...
