"""Message types and type-specific payloads of received messages."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar


class _StrEnum(str, Enum):
    def __str__(self) -> str:
        return self.value


class MessageType(_StrEnum):
    """Kind of a received message."""

    TEXT = "text"
    IMAGE = "image"
    VOICE = "voice"
    VIDEO = "video"
    LOCATION = "location"
    LINK = "link"
    EVENT = "event"


class EventType(_StrEnum):
    """Kind of an event message."""

    CHANGE_EXTERNAL_CONTACT = "change_external_contact"
    CHANGE_EXTERNAL_CHAT = "change_external_chat"
    SYS_APPROVAL_CHANGE = "sys_approval_change"
    CHANGE_CONTACT = "change_contact"
    APP_MENU_CLICK = "click"
    APP_MENU_VIEW = "view"
    APP_MENU_SCAN_CODE_PUSH = "scancode_push"
    APP_MENU_SCAN_CODE_WAIT_MSG = "scancode_waitmsg"
    APP_MENU_PIC_SYS_PHOTO = "pic_sysphoto"
    APP_MENU_PIC_PHOTO_OR_ALBUM = "pic_photo_or_album"
    APP_MENU_PIC_WEIXIN = "pic_weixin"
    APP_MENU_LOCATION_SELECT = "location_select"
    APP_SUBSCRIBE = "subscribe"
    APP_UNSUBSCRIBE = "unsubscribe"


class ChangeType(_StrEnum):
    """Kind of change carried by a change event."""

    ADD_EXTERNAL_CONTACT = "add_external_contact"
    EDIT_EXTERNAL_CONTACT = "edit_external_contact"
    ADD_HALF_EXTERNAL_CONTACT = "add_half_external_contact"
    DEL_EXTERNAL_CONTACT = "del_external_contact"
    DEL_FOLLOW_USER = "del_follow_user"
    TRANSFER_FAIL = "transfer_fail"
    CREATE_USER = "create_user"
    UPDATE_USER = "update_user"


_SIMPLE_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    '"': '\\"',
    "\\": "\\\\",
}


def _quote(text: str) -> str:
    parts = []
    for ch in text:
        if ch in _SIMPLE_ESCAPES:
            parts.append(_SIMPLE_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        else:
            code = ord(ch)
            if code < 0x20 or code == 0x7F:
                parts.append(f"\\x{code:02x}")
            elif code < 0x10000:
                parts.append(f"\\u{code:04x}")
            else:
                parts.append(f"\\U{code:08x}")
    return '"' + "".join(parts) + '"'


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    dec = Decimal(repr(value))
    sign, digits, exponent = dec.as_tuple()
    while len(digits) > 1 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    magnitude = len(digits) + exponent - 1
    if digits == (0,) or -4 <= magnitude < 21:
        return format(dec.normalize(), "f")
    mantissa = str(digits[0])
    if len(digits) > 1:
        mantissa += "." + "".join(map(str, digits[1:]))
    exp_sign = "-" if magnitude < 0 else "+"
    return f"{'-' if sign else ''}{mantissa}e{exp_sign}{abs(magnitude):02d}"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, dict):
        inner = ", ".join(f"{key}:{_format_value(item)}" for key, item in value.items())
        return "{" + inner + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_value(item) for item in value) + "]"
    return repr(value)


def _xml(tag: str, default: Any = "") -> Any:
    """Declare a payload field read from the XML child element ``tag``."""
    return field(default=default, metadata={"xml": tag})


class MessageExtras:
    """Base of all type-specific payloads of a received message.

    Fields read from the message XML carry the child element name in
    their ``metadata["xml"]`` entry.
    """

    _labels: ClassVar[tuple[tuple[str, str], ...]] = ()

    def describe(self) -> str:
        """Return a one-line, human-readable summary of the payload."""
        return ", ".join(
            f"{label}: {_format_value(getattr(self, attr))}" for label, attr in self._labels
        )


@dataclass(frozen=True)
class TextMessage(MessageExtras):
    """Payload of a text message."""

    content: str = _xml("Content")

    _labels = (("Content", "content"),)


@dataclass(frozen=True)
class ImageMessage(MessageExtras):
    """Payload of an image message."""

    pic_url: str = _xml("PicUrl")
    media_id: str = _xml("MediaId")

    _labels = (("PicURL", "pic_url"), ("MediaID", "media_id"))


@dataclass(frozen=True)
class VoiceMessage(MessageExtras):
    """Payload of a voice message."""

    media_id: str = _xml("MediaId")
    format: str = _xml("Format")

    _labels = (("MediaID", "media_id"), ("Format", "format"))


@dataclass(frozen=True)
class VideoMessage(MessageExtras):
    """Payload of a video message."""

    media_id: str = _xml("MediaId")
    thumb_media_id: str = _xml("ThumbMediaId")

    _labels = (("MediaID", "media_id"), ("ThumbMediaID", "thumb_media_id"))


@dataclass(frozen=True)
class LocationMessage(MessageExtras):
    """Payload of a location message; coordinates in degrees, north and east positive."""

    latitude: float = _xml("Location_X", 0.0)
    longitude: float = _xml("Location_Y", 0.0)
    scale: int = _xml("Scale", 0)
    label: str = _xml("Label")
    app_type: str = _xml("AppType")

    _labels = (
        ("Latitude", "latitude"),
        ("Longitude", "longitude"),
        ("Scale", "scale"),
        ("Label", "label"),
    )


@dataclass(frozen=True)
class LinkMessage(MessageExtras):
    """Payload of a link message."""

    title: str = _xml("Title")
    description: str = _xml("Description")
    url: str = _xml("Url")
    pic_url: str = _xml("PicUrl")

    _labels = (
        ("Title", "title"),
        ("Description", "description"),
        ("URL", "url"),
        ("PicURL", "pic_url"),
    )


@dataclass(frozen=True)
class EventAddExternalContact(MessageExtras):
    """An external contact was added."""

    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")
    state: str = _xml("State")
    welcome_code: str = _xml("WelcomeCode")

    _labels = (
        ("UserID", "user_id"),
        ("ExternalUserID", "external_user_id"),
        ("State", "state"),
        ("WelcomeCode", "welcome_code"),
    )


@dataclass(frozen=True)
class EventEditExternalContact(MessageExtras):
    """An external contact was edited."""

    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")
    state: str = _xml("State")

    _labels = (
        ("UserID", "user_id"),
        ("ExternalUserID", "external_user_id"),
        ("State", "state"),
    )


@dataclass(frozen=True)
class EventAddHalfExternalContact(MessageExtras):
    """An external contact added a member without verification."""

    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")
    state: str = _xml("State")
    welcome_code: str = _xml("WelcomeCode")

    _labels = (
        ("UserID", "user_id"),
        ("ExternalUserID", "external_user_id"),
        ("State", "state"),
        ("WelcomeCode", "welcome_code"),
    )


@dataclass(frozen=True)
class EventDelExternalContact(MessageExtras):
    """An external contact was deleted."""

    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")

    _labels = (("UserID", "user_id"), ("ExternalUserID", "external_user_id"))


@dataclass(frozen=True)
class EventDelFollowUser(MessageExtras):
    """A following member was deleted by an external contact."""

    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")

    _labels = (("UserID", "user_id"), ("ExternalUserID", "external_user_id"))


@dataclass(frozen=True)
class EventTransferFail(MessageExtras):
    """Taking over an external contact failed."""

    fail_reason: str = _xml("FailReason")
    user_id: str = _xml("UserID")
    external_user_id: str = _xml("ExternalUserID")

    _labels = (
        ("UserID", "user_id"),
        ("ExternalUserID", "external_user_id"),
        ("FailReason", "fail_reason"),
    )


@dataclass(frozen=True)
class EventChangeExternalChat(MessageExtras):
    """An external group chat changed."""

    to_user_name: str = _xml("ToUserName")
    from_user_name: str = _xml("FromUserName")
    fail_reason: str = _xml("FailReason")
    chat_id: str = _xml("ChatId")

    _labels = (
        ("ChatID", "chat_id"),
        ("ToUserName", "to_user_name"),
        ("FromUserName", "from_user_name"),
        ("FailReason", "fail_reason"),
    )


@dataclass(frozen=True)
class EventSysApprovalChange(MessageExtras):
    """The state of an approval request changed.

    ``approval_info`` holds the content of the ``ApprovalInfo`` element as
    nested mappings keyed by child element name.
    """

    approval_info: dict = field(default_factory=dict, metadata={"xml": "ApprovalInfo"})

    _labels = (("ApprovalInfo", "approval_info"),)


class _UserChangeDescription(MessageExtras):
    _title: ClassVar[str] = ""

    def describe(self) -> str:
        inner = ", ".join(
            f"{f.metadata['xml']}:{_format_value(getattr(self, f.name))}"
            for f in fields(self)  # type: ignore[arg-type]
        )
        return f"{self._title}: {{{inner}}}"


@dataclass(frozen=True)
class EventChangeTypeCreateUser(_UserChangeDescription):
    """A member was created."""

    user_id: str = _xml("UserID")
    name: str = _xml("Name")
    department: str = _xml("Department")
    is_leader_in_dept: str = _xml("IsLeaderInDept")
    mobile: str = _xml("Mobile")
    position: str = _xml("Position")
    gender: int = _xml("Gender", 0)
    email: str = _xml("Email")
    status: int = _xml("Status", 0)
    avatar: str = _xml("Avatar")
    alias: str = _xml("Alias")
    telephone: str = _xml("Telephone")
    address: str = _xml("Address")
    ext_attr: str = _xml("ExtAttr")
    type: str = _xml("Type")
    text: str = _xml("Text")
    value: str = _xml("Value")
    web: str = _xml("Web")
    title: str = _xml("Title")
    url: str = _xml("Url")

    _title = "CreateUser"


@dataclass(frozen=True)
class EventChangeTypeUpdateUser(_UserChangeDescription):
    """A member was updated."""

    user_id: str = _xml("UserID")
    new_user_id: str = _xml("NewUserID")
    name: str = _xml("Name")
    department: str = _xml("Department")
    is_leader_in_dept: str = _xml("IsLeaderInDept")
    mobile: str = _xml("Mobile")
    position: str = _xml("Position")
    gender: int = _xml("Gender", 0)
    email: str = _xml("Email")
    status: int = _xml("Status", 0)
    avatar: str = _xml("Avatar")
    alias: str = _xml("Alias")
    telephone: str = _xml("Telephone")
    address: str = _xml("Address")
    ext_attr: str = _xml("ExtAttr")
    type: str = _xml("Type")
    text: str = _xml("Text")
    value: str = _xml("Value")
    web: str = _xml("Web")
    title: str = _xml("Title")
    url: str = _xml("Url")

    _title = "UpdateUser"


@dataclass(frozen=True)
class EventAppMenuClick(MessageExtras):
    """An application menu item was clicked."""

    event_key: str = _xml("EventKey")

    _labels = (("EventKey", "event_key"),)


@dataclass(frozen=True)
class EventAppMenuView(MessageExtras):
    """An application menu link was opened."""

    event_key: str = _xml("EventKey")

    _labels = (("EventKey", "event_key"),)


@dataclass(frozen=True)
class EventAppSubscribe(MessageExtras):
    """A user subscribed to the application."""

    event_key: str = _xml("EventKey")

    _labels = (("EventKey", "event_key"),)


@dataclass(frozen=True)
class EventAppUnsubscribe(MessageExtras):
    """A user unsubscribed from the application."""

    event_key: str = _xml("EventKey")

    _labels = (("EventKey", "event_key"),)


@dataclass(frozen=True)
class EventUnknown(MessageExtras):
    """An event of a type without a dedicated payload; keeps the raw body."""

    event_type: str = ""
    raw: str = ""

    _labels = (("Raw", "raw"),)