from __future__ import annotations

import logging
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

from .models import BasicEntities, ContactRecord, EventRecord, SmartAction
from .utils import json_dumps

logger = logging.getLogger(__name__)

MAX_LINK_ACTIONS = 3
MAP_TITLE_LEN = 30
COPY_MIN_CHARS = 10
NOTE_MIN_CHARS = 20


class ActionType(str, Enum):
    CALENDAR = "calendar"
    CONTACT = "contact"
    MAP = "map"
    LINK = "link"
    CALL = "call"
    EMAIL = "email"
    COPY = "copy"
    NOTE = "note"
    SHARE = "share"

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def priority(self) -> int:
        return _PRIORITIES[self]


_ICONS: dict[ActionType, str] = {
    ActionType.CALENDAR: "calendar.badge.plus",
    ActionType.CONTACT: "person.crop.circle.badge.plus",
    ActionType.MAP: "map.fill",
    ActionType.LINK: "link",
    ActionType.CALL: "phone.fill",
    ActionType.EMAIL: "envelope.fill",
    ActionType.COPY: "doc.on.doc",
    ActionType.NOTE: "note.text",
    ActionType.SHARE: "square.and.arrow.up",
}

_PRIORITIES: dict[ActionType, int] = {
    ActionType.CALENDAR: 1,
    ActionType.CONTACT: 2,
    ActionType.MAP: 3,
    ActionType.LINK: 4,
    ActionType.CALL: 5,
    ActionType.EMAIL: 6,
    ActionType.COPY: 7,
    ActionType.NOTE: 8,
    ActionType.SHARE: 10,
}


def _action(kind: ActionType, title: str, payload: dict[str, Any]) -> SmartAction:
    return SmartAction(action_type=kind.value, title=title, icon=kind.icon, data=json_dumps(payload), priority=kind.priority)


def _value(value: str) -> dict[str, Any]:
    return {"value": value}


def calendar_action(event: EventRecord | None) -> SmartAction | None:
    if event is None or event.start is None:
        return None
    if event.name is None and event.location is None:
        return None

    title = f"Add to Calendar: {event.name}" if event.name else f"Add Event at {event.location}"
    payload: dict[str, Any] = {"start": event.start.timestamp()}
    if event.name:
        payload["name"] = event.name
    if event.end:
        payload["end"] = event.end.timestamp()
    if event.location:
        payload["location"] = event.location
    if event.description:
        payload["description"] = event.description
    return _action(ActionType.CALENDAR, title, payload)


def contact_action(contact: ContactRecord | None) -> SmartAction | None:
    if contact is None or not contact.is_valid:
        return None
    payload = {k: v for k, v in contact.to_dict().items() if k != "confidence" and v is not None}
    return _action(ActionType.CONTACT, f"Add {contact.name} to Contacts", payload)


def map_action(entities: BasicEntities, event: EventRecord | None) -> SmartAction | None:
    address = entities.addresses[0] if entities.addresses else (event.location if event else None)
    if not address:
        return None
    shown = address if len(address) <= MAP_TITLE_LEN else f"{address[:MAP_TITLE_LEN]}..."
    return _action(ActionType.MAP, f"Show on Map: {shown}", _value(address))


def link_actions(entities: BasicEntities) -> list[SmartAction]:
    out: list[SmartAction] = []
    for url in entities.urls[:MAX_LINK_ACTIONS]:
        try:
            shown = urlsplit(url).hostname or url
        except ValueError:
            continue
        out.append(_action(ActionType.LINK, f"Open: {shown}", _value(url)))
    return out


def call_action(entities: BasicEntities) -> SmartAction | None:
    if not entities.phones:
        return None
    phone = entities.phones[0]
    return _action(ActionType.CALL, f"Call {phone}", _value(phone))


def email_action(entities: BasicEntities) -> SmartAction | None:
    if not entities.emails:
        return None
    email = entities.emails[0]
    return _action(ActionType.EMAIL, f"Email {email}", _value(email))


def copy_action(text: str) -> SmartAction | None:
    if len(text or "") < COPY_MIN_CHARS:
        return None
    return _action(ActionType.COPY, "Copy Text", _value(text))


def note_action(text: str) -> SmartAction | None:
    if len(text or "") < NOTE_MIN_CHARS:
        return None
    return _action(ActionType.NOTE, "Create Note", _value(text))


def share_action() -> SmartAction:
    return _action(ActionType.SHARE, "Share", {})


class ActionGenerator:
    def generate(
        self,
        text: str,
        entities: BasicEntities,
        event: EventRecord | None = None,
        contact: ContactRecord | None = None,
    ) -> list[SmartAction]:
        actions: list[SmartAction] = []
        for candidate in (calendar_action(event), contact_action(contact), map_action(entities, event)):
            if candidate is not None:
                actions.append(candidate)
        actions.extend(link_actions(entities))
        for candidate in (call_action(entities), email_action(entities), copy_action(text), note_action(text)):
            if candidate is not None:
                actions.append(candidate)
        actions.append(share_action())
        return sorted(actions, key=lambda a: a.priority)
