from datetime import datetime, timedelta, timezone

import pytest

from workwx.rx_message import (
    MessageParseError,
    RxMessageCommon,
    extract_message_extras,
    from_envelope,
    parse_common,
)
from workwx.rx_types import (
    ChangeType,
    EventChangeTypeUpdateUser,
    EventType,
    EventUnknown,
    MessageType,
)

CST = timezone(timedelta(hours=8), "CST")

TEXT_BODY = (
    b"<xml><ToUserName><![CDATA[wwexamplecorpid]]></ToUserName>"
    b"<FromUserName><![CDATA[foobar]]></FromUserName><CreateTime>1583995625</CreateTime>"
    b"<MsgType><![CDATA[text]]></MsgType><Content><![CDATA[x123]]></Content>"
    b"<MsgId>2018405441</MsgId><AgentID>1000002</AgentID></xml>"
)

EDIT_BODY = (
    b"<xml><ToUserName><![CDATA[toUser]]></ToUserName><FromUserName><![CDATA[sys]]></FromUserName> "
    b"<CreateTime>1403610513</CreateTime><MsgType><![CDATA[event]]></MsgType>"
    b"<Event><![CDATA[change_external_contact]]></Event>"
    b"<ChangeType><![CDATA[edit_external_contact]]></ChangeType>"
    b"<UserID><![CDATA[zhangsan]]></UserID>"
    b"<ExternalUserID><![CDATA[wm_example_external_id]]></ExternalUserID>"
    b"<State><![CDATA[teststate]]></State></xml>"
)


def _user_body(change_type: str, extra: str = "") -> bytes:
    return (
        " <xml><ToUserName><![CDATA[toUser]]></ToUserName><FromUserName><![CDATA[sys]]></FromUserName> "
        "<CreateTime>1403610513</CreateTime><MsgType><![CDATA[event]]></MsgType>"
        "<Event><![CDATA[change_contact]]></Event>"
        f"<ChangeType>{change_type}</ChangeType><UserID><![CDATA[zhangsan]]></UserID>{extra}"
        "<Name><![CDATA[张三]]></Name><Department><![CDATA[1,2,3]]></Department>"
        "<MainDepartment>1</MainDepartment><IsLeaderInDept><![CDATA[1,0,0]]></IsLeaderInDept>"
        "<Position><![CDATA[产品经理]]></Position><Mobile>[phone]</Mobile><Gender>1</Gender>"
        "<Email><![CDATA[[email]]]></Email><Status>1</Status>"
        "<Avatar><![CDATA[https://example.com/avatar/0]]></Avatar><Alias><![CDATA[zhangsan]]></Alias>"
        "<Telephone><![CDATA[[phone]]]></Telephone><Address><![CDATA[广州市]]></Address>"
        "<ExtAttr><Item><Name><![CDATA[爱好]]></Name><Type>0</Type><Text><Value><![CDATA[旅游]]></Value>"
        "</Text></Item><Item><Name><![CDATA[卡号]]></Name><Type>1</Type><Web><Title><![CDATA[企业微信]]>"
        "</Title><Url><![CDATA[https://example.com]]></Url></Web></Item></ExtAttr></xml>"
    ).encode("utf-8")


def _event_body(event: str, extra: str = "") -> bytes:
    return (
        "<xml><ToUserName>corp</ToUserName><FromUserName>sys</FromUserName>"
        "<CreateTime>1403610513</CreateTime><MsgType>event</MsgType>"
        f"<Event>{event}</Event>{extra}</xml>"
    ).encode("utf-8")


def test_text_message():
    msg = from_envelope(TEXT_BODY)
    assert str(msg) == (
        'RxMessage { FromUserID: "foobar", SendTime: 1583995625000000000, MsgType: "text", '
        'MsgID: 2018405441, AgentID: 1000002, Event: "", ChangeType: "", Content: "x123" }'
    )
    assert msg.from_user_id == "foobar"
    assert msg.send_time == datetime(2020, 3, 12, 14, 47, 5, tzinfo=CST)
    assert msg.msg_type == MessageType.TEXT
    assert msg.msg_id == 2018405441
    assert msg.agent_id == 1000002

    text = msg.text()
    assert text is not None
    assert text.content == "x123"

    assert msg.image() is None
    assert msg.voice() is None
    assert msg.video() is None
    assert msg.location() is None
    assert msg.link() is None


def test_edit_external_contact_event():
    msg = from_envelope(EDIT_BODY)
    assert str(msg) == (
        'RxMessage { FromUserID: "sys", SendTime: 1403610513000000000, MsgType: "event", '
        'MsgID: 0, AgentID: 0, Event: "change_external_contact", '
        'ChangeType: "edit_external_contact", UserID: "zhangsan", '
        'ExternalUserID: "wm_example_external_id", State: "teststate" }'
    )
    assert msg.from_user_id == "sys"
    assert msg.send_time == datetime(2014, 6, 24, 19, 48, 33, tzinfo=CST)
    assert msg.msg_type == MessageType.EVENT
    assert msg.msg_id == 0
    assert msg.agent_id == 0
    assert msg.event == EventType.CHANGE_EXTERNAL_CONTACT
    assert msg.change_type == ChangeType.EDIT_EXTERNAL_CONTACT

    event = msg.event_edit_external_contact()
    assert event is not None
    assert event.user_id == "zhangsan"
    assert event.external_user_id == "wm_example_external_id"
    assert event.state == "teststate"


def test_change_contact_update_user():
    msg = from_envelope(_user_body("update_user", "<NewUserID><![CDATA[zhangsan001]]></NewUserID>"))
    user = msg.event_change_type_update_user()
    assert user is not None
    assert user.user_id == "zhangsan"
    assert user.new_user_id == "zhangsan001"
    assert user.name == "张三"
    assert user.department == "1,2,3"
    assert user.is_leader_in_dept == "1,0,0"
    assert user.gender == 1
    assert user.status == 1
    assert user.ext_attr == ""
    assert user.title == ""
    assert msg.event_change_type_create_user() is None


def test_change_contact_create_user():
    msg = from_envelope(_user_body("create_user"))
    user = msg.event_change_type_create_user()
    assert user is not None
    assert user.user_id == "zhangsan"
    assert user.address == "广州市"
    assert user.avatar == "https://example.com/avatar/0"
    assert msg.event_change_type_update_user() is None


def test_external_contact_update_user_is_dispatched():
    body = _event_body(
        "change_external_contact",
        "<ChangeType>update_user</ChangeType><UserID>alice</UserID>",
    )
    extras = extract_message_extras(parse_common(body), body)
    assert extras == EventChangeTypeUpdateUser(user_id="alice")


def test_parse_common_fields():
    common = parse_common(TEXT_BODY)
    assert common == RxMessageCommon(
        to_user_name="wwexamplecorpid",
        from_user_name="foobar",
        create_time=1583995625,
        msg_type="text",
        msg_id=2018405441,
        agent_id=1000002,
    )


def test_location_message():
    body = (
        b"<xml><FromUserName>bob</FromUserName><CreateTime>0</CreateTime>"
        b"<MsgType>location</MsgType><Location_X>23.134521</Location_X>"
        b"<Location_Y>113.358803</Location_Y><Scale>15</Scale>"
        b"<Label><![CDATA[somewhere]]></Label><AppType>wxwork</AppType></xml>"
    )
    msg = from_envelope(body)
    loc = msg.location()
    assert loc is not None
    assert loc.latitude == pytest.approx(23.134521)
    assert loc.longitude == pytest.approx(113.358803)
    assert loc.scale == 15
    assert loc.app_type == "wxwork"
    assert str(msg).endswith(
        'Latitude: 23.134521, Longitude: 113.358803, Scale: 15, Label: "somewhere" }'
    )


def test_image_message():
    body = (
        b"<xml><MsgType>image</MsgType><PicUrl>https://example.com/p.png</PicUrl>"
        b"<MediaId>media1</MediaId></xml>"
    )
    image = from_envelope(body).image()
    assert image is not None
    assert (image.pic_url, image.media_id) == ("https://example.com/p.png", "media1")


def test_menu_click_event():
    msg = from_envelope(_event_body("click", "<EventKey>key1</EventKey>"))
    click = msg.event_app_menu_click()
    assert click is not None
    assert click.event_key == "key1"
    assert msg.event == EventType.APP_MENU_CLICK
    assert msg.event_app_menu_view() is None


def test_unrecognised_event_keeps_raw_body():
    body = _event_body("something_new", "<Foo>bar</Foo>")
    msg = from_envelope(body)
    unknown = msg.event_unknown()
    assert unknown == EventUnknown(event_type="something_new", raw=body.decode("utf-8"))
    assert msg.event == "something_new"


def test_subscribe_event_is_not_specially_decoded():
    msg = from_envelope(_event_body("subscribe", "<EventKey>k</EventKey>"))
    assert msg.event_app_subscribe() is None
    unknown = msg.event_unknown()
    assert unknown is not None
    assert unknown.event_type == "subscribe"


def test_sys_approval_change():
    body = _event_body(
        "sys_approval_change",
        "<ApprovalInfo><SpNo>1</SpNo><SpName><![CDATA[请假]]></SpName>"
        "<Notifyer><UserId>a</UserId></Notifyer><Notifyer><UserId>b</UserId></Notifyer>"
        "</ApprovalInfo>",
    )
    approval = from_envelope(body).event_sys_approval_change()
    assert approval is not None
    assert approval.approval_info == {
        "SpNo": "1",
        "SpName": "请假",
        "Notifyer": [{"UserId": "a"}, {"UserId": "b"}],
    }


def test_unknown_message_type_raises():
    with pytest.raises(MessageParseError, match="unknown message type 'sticker'"):
        from_envelope(b"<xml><MsgType>sticker</MsgType></xml>")


def test_unknown_change_type_raises():
    body = _event_body("change_contact", "<ChangeType>delete_party</ChangeType>")
    with pytest.raises(MessageParseError, match="unknown change type 'delete_party'"):
        from_envelope(body)


def test_malformed_xml_raises():
    with pytest.raises(MessageParseError):
        from_envelope(b"<xml><MsgType>text</MsgType>")


def test_invalid_integer_raises():
    with pytest.raises(MessageParseError):
        from_envelope(b"<xml><MsgType>text</MsgType><CreateTime>abc</CreateTime></xml>")


def test_integer_out_of_range_raises():
    with pytest.raises(MessageParseError):
        parse_common(b"<xml><MsgId>99999999999999999999</MsgId></xml>")


def test_str_body_accepted():
    msg = from_envelope(TEXT_BODY.decode("utf-8"))
    assert msg.text().content == "x123"
    assert msg.msg_type is MessageType.TEXT