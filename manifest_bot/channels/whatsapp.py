"""
WhatsApp Cloud API adapter.

* ``parse_webhook`` - webhook body → ``(message_id, IntakeEvent)`` pairs.
* ``WhatsAppWebhook`` - aiohttp handlers for verification and delivery.
* ``WhatsAppChannel`` - outbound text, reply buttons and list messages.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
import structlog
from aiohttp import web

from manifest_bot.core.engine import ConversationEngine
from manifest_bot.core.errors import ExternalDependencyFailure
from manifest_bot.core.events import Choice, Identity, IntakeEvent, Renderable, WhatsAppId
from manifest_bot.core.interfaces import NotificationChannel

logger = structlog.get_logger()

MAX_BUTTONS = 3
BUTTON_TITLE_LIMIT = 20
MAX_LIST_ROWS = 10
ROW_TITLE_LIMIT = 24
ROW_DESCRIPTION_LIMIT = 72
INTERACTIVE_BODY_LIMIT = 1024
TEXT_BODY_LIMIT = 4096
LIST_BUTTON_LABEL = "Choose"
SECTION_TITLE = "Options"


# ── inbound ──────────────────────────────────────────────────────────────────
def _message_event(msg: Dict[str, Any], display_name: Optional[str]) -> Optional[IntakeEvent]:
    sender = msg.get("from")
    if not sender:
        return None
    identity = WhatsAppId(str(sender))
    kind = msg.get("type")

    if kind == "text":
        body = (msg.get("text") or {}).get("body")
        if body is None:
            return None
        return IntakeEvent.free_text(identity, body, display_name)

    if kind == "interactive":
        interactive = msg.get("interactive") or {}
        reply = interactive.get(interactive.get("type") or "") or {}
        if interactive.get("type") in ("button_reply", "list_reply") and reply.get("id"):
            return IntakeEvent.choice(identity, reply["id"], display_name)
    return None


def parse_webhook(payload: Dict[str, Any]) -> List[Tuple[str, IntakeEvent]]:
    """Text and interactive replies of a webhook body; statuses and media are skipped."""
    found: List[Tuple[str, IntakeEvent]] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            value = change.get("value") or {}
            names = {
                contact.get("wa_id"): (contact.get("profile") or {}).get("name")
                for contact in value.get("contacts") or []
            }
            for msg in value.get("messages") or []:
                event = _message_event(msg, names.get(msg.get("from")))
                if event is None:
                    logger.debug("whatsapp_message_ignored", type=msg.get("type"))
                    continue
                found.append((msg.get("id") or "", event))
    return found


class RecentIds:
    """Bounded set of recently seen message ids."""

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._ids: "OrderedDict[str, None]" = OrderedDict()

    def add(self, message_id: str) -> bool:
        """Remember ``message_id``; False when it was already known."""
        if message_id in self._ids:
            self._ids.move_to_end(message_id)
            return False
        self._ids[message_id] = None
        if len(self._ids) > self.capacity:
            self._ids.popitem(last=False)
        return True

    def __contains__(self, message_id: str) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


# ── outbound ─────────────────────────────────────────────────────────────────
def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _text_payloads(to: str, body: str) -> List[Dict[str, Any]]:
    chunks = [body[i:i + TEXT_BODY_LIMIT] for i in range(0, len(body), TEXT_BODY_LIMIT)] or [" "]
    return [
        {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": chunk},
        }
        for chunk in chunks
    ]


def _button_payload(to: str, body: str, choices: Sequence[Choice]) -> Dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "interactive",
        "interactive": {
            "type": "button",
            "body": {"text": body},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {"id": c.choice_id, "title": _truncate(c.label, BUTTON_TITLE_LIMIT)},
                    }
                    for c in choices
                ]
            },
        },
    }


def _row(choice: Choice) -> Dict[str, str]:
    row = {"id": choice.choice_id, "title": _truncate(choice.label, ROW_TITLE_LIMIT)}
    if len(choice.label) > ROW_TITLE_LIMIT:
        row["description"] = _truncate(choice.label, ROW_DESCRIPTION_LIMIT)
    return row


def _list_payload(to: str, body: str, choices: Sequence[Choice]) -> Dict[str, Any]:
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "interactive",
        "interactive": {
            "type": "list",
            "body": {"text": body},
            "action": {
                "button": LIST_BUTTON_LABEL,
                "sections": [{"title": SECTION_TITLE, "rows": [_row(c) for c in choices]}],
            },
        },
    }


def build_payloads(to: str, message: Renderable) -> List[Dict[str, Any]]:
    """Cloud API message bodies for one Renderable, in sending order."""
    body = message.text or " "
    choices = list(message.choices)
    if not choices:
        return _text_payloads(to, body)

    payloads: List[Dict[str, Any]] = []
    if len(body) > INTERACTIVE_BODY_LIMIT:
        payloads.extend(_text_payloads(to, body))
        body = "👇 Choose an option:"

    if len(choices) <= MAX_BUTTONS:
        payloads.append(_button_payload(to, body, choices))
        return payloads

    for start in range(0, len(choices), MAX_LIST_ROWS):
        chunk_body = body if start == 0 else "👇 More options:"
        payloads.append(_list_payload(to, chunk_body, choices[start:start + MAX_LIST_ROWS]))
    return payloads


class WhatsAppChannel(NotificationChannel):
    def __init__(
        self,
        token: str,
        phone_id: str,
        api_url: str = "https://graph.facebook.com/v19.0",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token
        self.phone_id = phone_id
        self.api_url = api_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30)

    @property
    def messages_url(self) -> str:
        return f"{self.api_url}/{self.phone_id}/messages"

    def accepts(self, identity: Identity) -> bool:
        return isinstance(identity, WhatsAppId)

    async def send(self, identity: Identity, message: Renderable) -> None:
        for payload in build_payloads(str(identity.value), message):
            await self._post(payload)

    async def _post(self, payload: Dict[str, Any]) -> None:
        try:
            response = await self._client.post(
                self.messages_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.HTTPError as exc:
            raise ExternalDependencyFailure("whatsapp", str(exc)) from exc
        if response.is_error:
            raise ExternalDependencyFailure(
                "whatsapp", f"HTTP {response.status_code}: {response.text[:200]}"
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


# ── webhook ──────────────────────────────────────────────────────────────────
class WhatsAppWebhook:
    def __init__(
        self,
        engine: ConversationEngine,
        channel: WhatsAppChannel,
        verify_token: str,
        recent: Optional[RecentIds] = None,
    ):
        self.engine = engine
        self.channel = channel
        self.verify_token = verify_token
        self.recent = recent or RecentIds()

    async def verify(self, request: web.Request) -> web.Response:
        mode = request.query.get("hub.mode")
        token = request.query.get("hub.verify_token")
        challenge = request.query.get("hub.challenge")
        if not mode or not token or challenge is None:
            return web.Response(status=400, text="missing parameters")
        if mode == "subscribe" and token == self.verify_token:
            logger.info("whatsapp_webhook_verified")
            return web.Response(status=200, text=challenge)
        logger.warning("whatsapp_webhook_verification_failed", mode=mode)
        return web.Response(status=403, text="forbidden")

    async def receive(self, request: web.Request) -> web.Response:
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("whatsapp_webhook_bad_json")
            return web.Response(status=200, text="ok")

        for message_id, event in parse_webhook(payload):
            if message_id and not self.recent.add(message_id):
                logger.info("whatsapp_duplicate_dropped", message_id=message_id)
                continue
            await self._process(message_id, event)
        return web.Response(status=200, text="ok")

    async def _process(self, message_id: str, event: IntakeEvent) -> None:
        try:
            replies = await self.engine.handle(event)
        except Exception:
            logger.exception("whatsapp_event_failed", message_id=message_id, identity=event.identity.key)
            return
        for reply in replies:
            try:
                await self.channel.send(event.identity, reply)
            except ExternalDependencyFailure as exc:
                logger.error("whatsapp_reply_failed", identity=event.identity.key, error=str(exc))


def create_webhook_app(
    engine: ConversationEngine,
    channel: WhatsAppChannel,
    verify_token: str,
    path: str = "/webhook",
) -> web.Application:
    webhook = WhatsAppWebhook(engine, channel, verify_token)
    app = web.Application()
    app.router.add_get(path, webhook.verify)
    app.router.add_post(path, webhook.receive)
    return app
