"""Parsing of received (callback) message envelopes."""

from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from dataclasses import MISSING, dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, TypeVar

from .rx_types import (
    ChangeType,
    EventAddExternalContact,
    EventAddHalfExternalContact,
    EventAppMenuClick,
    EventAppMenuView,
    EventAppSubscribe,
    EventAppUnsubscribe,
    EventChangeExternalChat,
    EventChangeTypeCreateUser,
    EventChangeTypeUpdateUser,
    EventDelExternalContact,
    EventDelFollowUser,
    EventEditExternalContact,
    EventSysApprovalChange,
    EventTransferFail,
    EventType,
    EventUnknown,
    ImageMessage,
    LinkMessage,
    LocationMessage,
    MessageExtras,
    MessageType,
    TextMessage,
    VideoMessage,
    VoiceMessage,
    _quote,
)

_T = TypeVar("_T", bound=MessageExtras)
_E = TypeVar("_E", bound=Enum)

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MessageParseError(ValueError):
    """A received message body could not be understood."""


@dataclass(frozen=True)
class RxMessageCommon:
    """Fields shared by every received message, as raw values."""

    to_user_name: str = ""
    from_user_name: str = ""
    create_time: int = 0
    msg_type: str = ""
    msg_id: int = 0
    agent_id: int = 0
    event: str = ""
    change_type: str = ""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_root(body: bytes | str) -> ET.Element:
    data = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    try:
        return ET.fromstring(data.lstrip())
    except ET.ParseError as exc:
        raise MessageParseError(f"malformed message XML: {exc}") from exc


def _find_child(root: ET.Element, tag: str) -> ET.Element | None:
    found = None
    for child in root:
        if _local_name(child.tag) == tag:
            found = child
    return found


def _char_data(element: ET.Element) -> str:
    """Return the character data directly inside ``element``."""
    return (element.text or "") + "".join(child.tail or "" for child in element)


def _parse_int(text: str, tag: str) -> int:
    stripped = text.strip()
    if not stripped and not text:
        return 0
    if not _INT_RE.fullmatch(stripped):
        raise MessageParseError(f"invalid integer in <{tag}>: {text!r}")
    value = int(stripped)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise MessageParseError(f"integer out of range in <{tag}>: {text!r}")
    return value


def _parse_float(text: str, tag: str) -> float:
    stripped = text.strip()
    if not stripped and not text:
        return 0.0
    if "_" in stripped:
        raise MessageParseError(f"invalid number in <{tag}>: {text!r}")
    try:
        value = float(stripped)
    except ValueError as exc:
        raise MessageParseError(f"invalid number in <{tag}>: {text!r}") from exc
    if math.isinf(value) and "inf" not in stripped.lower():
        raise MessageParseError(f"number out of range in <{tag}>: {text!r}")
    return value


def _to_mapping(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        return element.text or ""
    result: dict[str, Any] = {}
    repeated: set[str] = set()
    for child in children:
        key = _local_name(child.tag)
        value = _to_mapping(child)
        if key not in result:
            result[key] = value
        elif key in repeated:
            result[key].append(value)
        else:
            result[key] = [result[key], value]
            repeated.add(key)
    return result


def _decode(cls: type[_T], root: ET.Element) -> _T:
    values: dict[str, Any] = {}
    for f in fields(cls):  # type: ignore[arg-type]
        tag = f.metadata.get("xml")
        if tag is None:
            continue
        element = _find_child(root, tag)
        if element is None:
            continue
        if f.default_factory is not MISSING:
            values[f.name] = _to_mapping(element)
        elif isinstance(f.default, float):
            values[f.name] = _parse_float(_char_data(element), tag)
        elif isinstance(f.default, int):
            values[f.name] = _parse_int(_char_data(element), tag)
        else:
            values[f.name] = _char_data(element)
    return cls(**values)


def _common_from_root(root: ET.Element) -> RxMessageCommon:
    def text(tag: str) -> str:
        element = _find_child(root, tag)
        return "" if element is None else _char_data(element)

    def integer(tag: str) -> int:
        element = _find_child(root, tag)
        return 0 if element is None else _parse_int(_char_data(element), tag)

    return RxMessageCommon(
        to_user_name=text("ToUserName"),
        from_user_name=text("FromUserName"),
        create_time=integer("CreateTime"),
        msg_type=text("MsgType"),
        msg_id=integer("MsgId"),
        agent_id=integer("AgentID"),
        event=text("Event"),
        change_type=text("ChangeType"),
    )


def parse_common(body: bytes | str) -> RxMessageCommon:
    """Read the fields common to all received messages."""
    return _common_from_root(_parse_root(body))


_BY_MESSAGE_TYPE: dict[str, type[MessageExtras]] = {
    MessageType.TEXT: TextMessage,
    MessageType.IMAGE: ImageMessage,
    MessageType.VOICE: VoiceMessage,
    MessageType.VIDEO: VideoMessage,
    MessageType.LOCATION: LocationMessage,
    MessageType.LINK: LinkMessage,
}

_BY_EVENT: dict[str, type[MessageExtras]] = {
    EventType.SYS_APPROVAL_CHANGE: EventSysApprovalChange,
    EventType.CHANGE_EXTERNAL_CHAT: EventChangeExternalChat,
    EventType.APP_MENU_CLICK: EventAppMenuClick,
    EventType.APP_MENU_VIEW: EventAppMenuView,
}

_BY_CHANGE_TYPE: dict[str, dict[str, type[MessageExtras]]] = {
    EventType.CHANGE_EXTERNAL_CONTACT: {
        ChangeType.ADD_EXTERNAL_CONTACT: EventAddExternalContact,
        ChangeType.EDIT_EXTERNAL_CONTACT: EventEditExternalContact,
        ChangeType.DEL_EXTERNAL_CONTACT: EventDelExternalContact,
        ChangeType.DEL_FOLLOW_USER: EventDelFollowUser,
        ChangeType.ADD_HALF_EXTERNAL_CONTACT: EventAddHalfExternalContact,
        ChangeType.TRANSFER_FAIL: EventTransferFail,
        ChangeType.CREATE_USER: EventChangeTypeCreateUser,
        ChangeType.UPDATE_USER: EventChangeTypeUpdateUser,
    },
    EventType.CHANGE_CONTACT: {
        ChangeType.UPDATE_USER: EventChangeTypeUpdateUser,
        ChangeType.CREATE_USER: EventChangeTypeCreateUser,
    },
}


def _raw_text(body: bytes | str) -> str:
    return body if isinstance(body, str) else bytes(body).decode("utf-8", errors="replace")


def _extract(common: RxMessageCommon, root: ET.Element, body: bytes | str) -> MessageExtras:
    if common.msg_type in _BY_MESSAGE_TYPE:
        return _decode(_BY_MESSAGE_TYPE[common.msg_type], root)
    if common.msg_type != MessageType.EVENT:
        raise MessageParseError(f"unknown message type '{common.msg_type}'")

    if common.event in _BY_CHANGE_TYPE:
        by_change = _BY_CHANGE_TYPE[common.event]
        if common.change_type not in by_change:
            raise MessageParseError(f"unknown change type '{common.change_type}'")
        return _decode(by_change[common.change_type], root)
    if common.event in _BY_EVENT:
        return _decode(_BY_EVENT[common.event], root)
    return EventUnknown(event_type=common.event, raw=_raw_text(body))


def extract_message_extras(common: RxMessageCommon, body: bytes | str) -> MessageExtras:
    """Decode the payload specific to the message's type."""
    return _extract(common, _parse_root(body), body)


def _coerce(enum_cls: type[_E], value: str) -> _E | str:
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _send_time(timestamp: int) -> datetime:
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).astimezone()
    except (OverflowError, OSError, ValueError) as exc:
        raise MessageParseError(f"creation time out of range: {timestamp}") from exc


@dataclass(frozen=True)
class RxMessage:
    """A received message with its type-specific payload."""

    from_user_id: str
    send_time: datetime
    msg_type: MessageType
    msg_id: int
    agent_id: int
    event: EventType | str
    change_type: ChangeType | str
    extras: MessageExtras

    def __str__(self) -> str:
        nanos = (self.send_time - _EPOCH) // timedelta(microseconds=1) * 1000
        return (
            f"RxMessage {{ FromUserID: {_quote(self.from_user_id)}, "
            f"SendTime: {nanos}, "
            f"MsgType: {_quote(str(self.msg_type))}, "
            f"MsgID: {self.msg_id}, "
            f"AgentID: {self.agent_id}, "
            f"Event: {_quote(str(self.event))}, "
            f"ChangeType: {_quote(str(self.change_type))}, "
            f"{self.extras.describe()} }}"
        )

    def _extras_as(self, cls: type[_T]) -> _T | None:
        return self.extras if isinstance(self.extras, cls) else None

    def text(self) -> TextMessage | None:
        """The text payload, or None for other kinds."""
        return self._extras_as(TextMessage)

    def image(self) -> ImageMessage | None:
        """The image payload, or None for other kinds."""
        return self._extras_as(ImageMessage)

    def voice(self) -> VoiceMessage | None:
        """The voice payload, or None for other kinds."""
        return self._extras_as(VoiceMessage)

    def video(self) -> VideoMessage | None:
        """The video payload, or None for other kinds."""
        return self._extras_as(VideoMessage)

    def location(self) -> LocationMessage | None:
        """The location payload, or None for other kinds."""
        return self._extras_as(LocationMessage)

    def link(self) -> LinkMessage | None:
        """The link payload, or None for other kinds."""
        return self._extras_as(LinkMessage)

    def event_add_external_contact(self) -> EventAddExternalContact | None:
        """The add-external-contact event, or None."""
        return self._extras_as(EventAddExternalContact)

    def event_edit_external_contact(self) -> EventEditExternalContact | None:
        """The edit-external-contact event, or None."""
        return self._extras_as(EventEditExternalContact)

    def event_del_external_contact(self) -> EventDelExternalContact | None:
        """The delete-external-contact event, or None."""
        return self._extras_as(EventDelExternalContact)

    def event_del_follow_user(self) -> EventDelFollowUser | None:
        """The delete-follow-user event, or None."""
        return self._extras_as(EventDelFollowUser)

    def event_add_half_external_contact(self) -> EventAddHalfExternalContact | None:
        """The add-half-external-contact event, or None."""
        return self._extras_as(EventAddHalfExternalContact)

    def event_transfer_fail(self) -> EventTransferFail | None:
        """The transfer-fail event, or None."""
        return self._extras_as(EventTransferFail)

    def event_change_external_chat(self) -> EventChangeExternalChat | None:
        """The external-chat change event, or None."""
        return self._extras_as(EventChangeExternalChat)

    def event_sys_approval_change(self) -> EventSysApprovalChange | None:
        """The approval state change event, or None."""
        return self._extras_as(EventSysApprovalChange)

    def event_change_type_update_user(self) -> EventChangeTypeUpdateUser | None:
        """The member update event, or None."""
        return self._extras_as(EventChangeTypeUpdateUser)

    def event_change_type_create_user(self) -> EventChangeTypeCreateUser | None:
        """The member creation event, or None."""
        return self._extras_as(EventChangeTypeCreateUser)

    def event_app_menu_click(self) -> EventAppMenuClick | None:
        """The menu click event, or None."""
        return self._extras_as(EventAppMenuClick)

    def event_app_menu_view(self) -> EventAppMenuView | None:
        """The menu link event, or None."""
        return self._extras_as(EventAppMenuView)

    def event_app_subscribe(self) -> EventAppSubscribe | None:
        """The subscribe event, or None."""
        return self._extras_as(EventAppSubscribe)

    def event_app_unsubscribe(self) -> EventAppUnsubscribe | None:
        """The unsubscribe event, or None."""
        return self._extras_as(EventAppUnsubscribe)

    def event_unknown(self) -> EventUnknown | None:
        """An event of an unrecognised type, or None."""
        return self._extras_as(EventUnknown)


def from_envelope(body: bytes | str) -> RxMessage:
    """Parse a decrypted message body into an :class:`RxMessage`."""
    root = _parse_root(body)
    common = _common_from_root(root)
    extras = _extract(common, root, body)
    return RxMessage(
        from_user_id=common.from_user_name,
        send_time=_send_time(common.create_time),
        msg_type=MessageType(common.msg_type),
        msg_id=common.msg_id,
        agent_id=common.agent_id,
        event=_coerce(EventType, common.event),
        change_type=_coerce(ChangeType, common.change_type),
        extras=extras,
    )