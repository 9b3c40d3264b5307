# workwx

A small, dependency-free library for WeCom (Enterprise WeChat) applications:

- `workwx.rx_message` parses the XML messages and events WeCom posts to a
  callback URL;
- `workwx.rx_types` holds the message, event and change type enums and the
  payload classes;
- `workwx.token` keeps an access token or ticket fresh in a background thread;
- `workwx.user_info` turns raw member records into `UserInfo` objects;
- `workwx.webhook` sends text and Markdown messages through a group robot
  webhook.

## Installation

```
pip install workwx
```

## Parsing received messages

```python
from workwx.rx_message import from_envelope, MessageParseError

body = b"<xml>...</xml>"  # the decrypted callback body
try:
    msg = from_envelope(body)
except MessageParseError as exc:
    print("bad message:", exc)
else:
    print(msg.from_user_id, msg.send_time, msg.msg_type)
    text = msg.text()
    if text is not None:
        print("text:", text.content)
```

`from_envelope` accepts `bytes` or `str` and returns a frozen `RxMessage`
with `from_user_id`, `send_time` (an aware `datetime` in local time),
`msg_type`, `msg_id`, `agent_id`, `event`, `change_type` and `extras`.
`event` and `change_type` are `EventType` / `ChangeType` members when the
value is known, otherwise the plain string.

For each kind of payload there is an accessor that returns it, or `None` when
the message is of another kind: `text()`, `image()`, `voice()`, `video()`,
`location()`, `link()`, `event_add_external_contact()`,
`event_edit_external_contact()`, `event_del_external_contact()`,
`event_del_follow_user()`, `event_add_half_external_contact()`,
`event_transfer_fail()`, `event_change_external_chat()`,
`event_sys_approval_change()`, `event_change_type_update_user()`,
`event_change_type_create_user()`, `event_app_menu_click()`,
`event_app_menu_view()`, `event_app_subscribe()`, `event_app_unsubscribe()`
and `event_unknown()`.

`str(msg)` gives a one-line description, for example:

```
RxMessage { FromUserID: "foobar", SendTime: 1583995625000000000, MsgType: "text", MsgID: 2018405441, AgentID: 1000002, Event: "", ChangeType: "", Content: "x123" }
```

Every payload class derives from `MessageExtras` and has `describe()`, which
produces the trailing part of that line.

An event type without a dedicated payload comes back as `EventUnknown`, which
keeps the event type and the raw body. An unknown message type, an unknown
change type under `change_external_contact` or `change_contact`, malformed
XML, or a bad number raises `MessageParseError` (a `ValueError`).

The lower-level steps are available too: `parse_common(body)` returns the
shared fields as an `RxMessageCommon`, and
`extract_message_extras(common, body)` decodes the type-specific payload.

## Access tokens

```python
import threading
from workwx.token import Token, TokenInfo

def fetch() -> TokenInfo:
    # obtain the token by whatever means; expires_in is in seconds
    return TokenInfo(token="token", expires_in=7200)

access_token = Token(fetch)
stop = threading.Event()
thread = access_token.spawn_refresher(stop)

print(access_token.get_token())
stop.set()  # the refresher thread returns
```

`get_token()` returns the current token, calling `fetch` first if there is
none yet; if that fetch fails it returns an empty string. `sync_token()`
fetches at once and lets errors propagate.

`run_refresher(stop_event)` (started in a daemon thread by
`spawn_refresher`) refreshes the token 30 minutes before it expires, waiting
at least 5 seconds between refreshes. Failed fetches are retried with
randomised exponential backoff for up to 15 minutes per round.

## User information

```python
from workwx.user_info import UserDetail

detail = UserDetail(
    user_id="zhangsan",
    name="Zhang San",
    dept_ids=[1, 2],
    dept_order=[10, 20],
    is_leader_in_dept=[1, 0],
    gender="1",
    is_enabled=1,
    status=1,
)
info = detail.into_user_info()
print(info.gender, info.status, info.departments)
```

`into_user_info()` zips the department lists into `UserDeptInfo` entries
with `reshape_dept_info`, parses the gender with `user_gender_from_str`, and
maps the status onto `UserStatus`. Mismatched list lengths or a gender that
is not an integer raise `ValueError`. An empty `is_leader_in_dept` list means
nobody is a leader; an empty gender string means `UserGender.UNSPECIFIED`.
Values outside the enums are kept as plain integers.

`UserIdentityInfo` holds a visiting user's `user_id`, `open_id` and
`device_id`.

## Group robot webhooks

```python
from workwx.webhook import MENTION_ALL, Mentions, WebhookClient

client = WebhookClient("placeholder", "https://qyapi.example.com", timeout=10)
client.send_text_message("Build finished", Mentions(user_ids=[MENTION_ALL]))
client.send_markdown_message("**Deploy** done, <@zhangsan>")
```

Messages are posted as JSON to `/cgi-bin/webhook/send` on the given host,
with the key in the query string (`compose_url` builds that URL). A reply
with an HTTP error status is not raised; network failures are. In Markdown
messages, mention users with the `<@userid>` syntax instead of `Mentions`.

## What this package does not do

It does not call the WeCom server APIs itself: there is no call that obtains
an access token, reads members or sends application messages, so the
`fetch` callable given to `Token` and the data given to `UserDetail` must
come from your own code. It does not decrypt callback bodies or check their
signatures, and it provides no HTTP server for receiving callbacks; it only
parses bodies that are already decrypted.