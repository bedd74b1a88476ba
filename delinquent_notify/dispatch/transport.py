from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

import requests

from ..config.loader import ConfigError, NotifyConfig
from .targets import DeliveryMode, NotificationTarget

"""HTTP transport for notifications (Resend email API by default).

One POST per target. The transport never decides success for the batch: it
only reports, per call, either the provider message id or the provider's
error body. Network errors and timeouts surface as requests exceptions and
are classified by the dispatcher.
"""

__all__ = [
    "DEFAULT_ENDPOINT",
    "DEFAULT_SENDER",
    "DEFAULT_API_KEY_ENV",
    "TransportResponse",
    "Transport",
    "ResendTransport",
    "render_subject",
    "render_text",
]

DEFAULT_ENDPOINT = "https://api.resend.com/emails"
DEFAULT_SENDER = "Operations <onboarding@resend.dev>"
DEFAULT_API_KEY_ENV = "RESEND_API_KEY"


@dataclass(frozen=True)
class TransportResponse:
    ok: bool
    provider_reference: str | None = None
    error_detail: Any = None


class Transport(Protocol):
    def send(self, target: NotificationTarget, reply_to: str) -> TransportResponse: ...


def _money(value: Decimal | None) -> str:
    return f"${value:,.2f}" if value is not None else "-"


def render_subject(target: NotificationTarget) -> str:
    if target.mode is DeliveryMode.PER_MEMBER:
        return f"Past Due Account Notification - {target.identity}"
    return f"Delinquent Member Report - {target.identity}"


def render_text(target: NotificationTarget) -> str:
    """Plain-text body. Rich templates live with the delivery backend."""
    if target.mode is DeliveryMode.PER_MEMBER:
        return (
            "Good Morning,\n\n"
            f"Member {target.identity} had a declined payment, placing the account on hold.\n\n"
            f"At this time, the account is {target.days_late} days past due.\n\n"
            "Please have the member reach out so that we can assist. This is the final notice.\n\n"
            "Best,"
        )
    lines = [
        f"The following {len(target.members)} member(s) assigned to {target.identity} are past due:",
        "",
    ]
    for m in target.members:
        days = f"{m.days_late} days late" if m.days_late is not None else "days late unknown"
        lines.append(f"- {m.name}: {_money(m.amount_due)} ({days})")
    lines += ["", f"Total amount due: {_money(target.total_amount)}"]
    return "\n".join(lines)


class ResendTransport:
    """requests based client for the Resend emails endpoint.

    requests.Session is not thread-safe, so each dispatch worker thread gets
    its own session (created on first use). An explicitly passed ``session``
    is used as-is from every thread; callers that pass one own its locking.
    """

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = DEFAULT_ENDPOINT,
        sender: str = DEFAULT_SENDER,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.sender = sender
        self.timeout = timeout
        self._auth = {"Authorization": f"Bearer {api_key}"}
        self._fixed_session = session
        if session is not None:
            session.headers.update(self._auth)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._sessions: list[requests.Session] = []

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        if self._fixed_session is not None:
            return self._fixed_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._auth)
            self._local.session = session
            with self._lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        """Close the per-thread sessions this transport created."""
        with self._lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    @classmethod
    def from_config(cls, cfg: NotifyConfig) -> ResendTransport:
        """Build from config; the API key is read from the configured env var."""
        api_key = os.getenv(cfg.delivery.api_key_env)
        if not api_key:
            raise ConfigError(f"{cfg.delivery.api_key_env} environment variable is not set")
        return cls(
            api_key,
            endpoint=cfg.delivery.endpoint,
            sender=cfg.sender,
            timeout=cfg.delivery.timeout_seconds,
        )

    def build_message(self, target: NotificationTarget, reply_to: str) -> dict[str, Any]:
        return {
            "from": self.sender,
            "to": [target.recipient],
            "reply_to": reply_to,
            "subject": render_subject(target),
            "text": render_text(target),
        }

    def send(self, target: NotificationTarget, reply_to: str) -> TransportResponse:
        resp = self.session.post(
            self.endpoint,
            json=self.build_message(target, reply_to),
            timeout=self.timeout,
        )
        try:
            body: Any = resp.json()
        except ValueError:
            body = resp.text
        if resp.ok:
            ref = body.get("id") if isinstance(body, dict) else None
            return TransportResponse(ok=True, provider_reference=ref)
        return TransportResponse(ok=False, error_detail=body or f"HTTP {resp.status_code}")
