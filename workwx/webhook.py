"""Client for group robot webhooks."""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping
from urllib.parse import urlencode, urlsplit, urlunsplit

MENTION_ALL = "@all"

_SEND_PATH = "/cgi-bin/webhook/send"

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class Mentions:
    """Whom a group robot text message mentions; ``MENTION_ALL`` mentions everyone."""

    user_ids: list[str] = field(default_factory=list)
    mobiles: list[str] = field(default_factory=list)


def _encode_json(obj: Any) -> bytes:
    text = json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


class WebhookClient:
    """Sends messages through a group robot webhook identified by its key."""

    def __init__(self, key: str, qyapi_host: str, timeout: float | None = None) -> None:
        self._key = key
        self._qyapi_host = qyapi_host
        self._timeout = timeout

    @property
    def key(self) -> str:
        """The webhook key this client uses."""
        return self._key

    def compose_url(
        self,
        path: str,
        params: Mapping[str, str | Iterable[str]] | None = None,
    ) -> str:
        """Build the request URL for ``path`` with ``params`` and the webhook key."""
        values: dict[str, list[str]] = {}
        for name, value in (params or {}).items():
            values[name] = [value] if isinstance(value, str) else list(value)
        values["key"] = [self._key]

        try:
            base = urlsplit(self._qyapi_host)
        except ValueError as exc:
            raise ValueError(f"qyapiHost invalid: host={self._qyapi_host} err={exc}") from exc
        query = urlencode(sorted(values.items()), doseq=True)
        return urlunsplit((base.scheme, base.netloc, path, query, base.fragment))

    def _post_json(self, path: str, payload: Mapping[str, Any]) -> None:
        request = urllib.request.Request(
            self.compose_url(path),
            data=_encode_json(payload),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                response.read()
        except urllib.error.HTTPError as exc:
            # A reply with an error status still counts as delivered.
            exc.close()

    def _send_message(self, msgtype: str, content: Mapping[str, Any]) -> None:
        self._post_json(_SEND_PATH, {"msgtype": msgtype, msgtype: dict(content)})

    def send_text_message(self, content: str, mentions: Mentions | None = None) -> None:
        """Send a text message, optionally mentioning members."""
        params: dict[str, Any] = {"content": content}
        if mentions is not None:
            if mentions.user_ids:
                params["mentioned_list"] = list(mentions.user_ids)
            if mentions.mobiles:
                params["mentioned_mobile_list"] = list(mentions.mobiles)
        self._send_message("text", params)

    def send_markdown_message(self, content: str) -> None:
        """Send a Markdown message; mention members with ``<@userid>`` in the text."""
        self._send_message("markdown", {"content": content})