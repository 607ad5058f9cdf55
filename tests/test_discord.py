import json

import pytest

from multirole.discord import (
    EC_TITLES,
    LEVEL_COLORS,
    RID_FORMAT_ERROR,
    SERVICE_MESSAGE_TITLE,
    DiscordWebhookSink,
    make_embed_document,
    split_webhook_uri,
)
from multirole.logsinks import ECLogProps, ErrorCategory, Level, ServiceType, SvcLogProps

DEFAULT_RID = "\nReplay ID: {0}"


def test_split_webhook_uri():
    assert split_webhook_uri("https://hooks.example.com/api/webhooks/1/token") == (
        "https",
        "hooks.example.com",
        "/api/webhooks/1/token",
    )


@pytest.mark.parametrize("uri", ["no-colon-here", "https:/", "https://host-without-path"])
def test_split_webhook_uri_errors(uri):
    with pytest.raises(ValueError):
        split_webhook_uri(uri)


def test_service_embed():
    doc = make_embed_document(SvcLogProps(ServiceType.DATA_PROVIDER, Level.WARN), "msg", DEFAULT_RID)
    embed = doc["embeds"][0]
    assert embed["title"] == SERVICE_MESSAGE_TITLE
    assert embed["description"] == "msg"
    assert embed["color"] == LEVEL_COLORS[Level.WARN]
    assert embed["footer"] == {"text": "DataProvider"}


def test_error_category_embed():
    doc = make_embed_document(ECLogProps(ErrorCategory.OFFICIAL, 42, 3), "boom", DEFAULT_RID)
    embed = doc["embeds"][0]
    assert embed["title"] == "Official Script Error"
    assert embed["color"] == 0xFF0000
    assert embed["description"] == "```\nboom\n```Turn: 3 | \nReplay ID: 42"


def test_error_category_embed_bad_rid_format():
    doc = make_embed_document(ECLogProps(ErrorCategory.CORE, 42, 1), "boom", "{1}")
    embed = doc["embeds"][0]
    assert embed["title"] == EC_TITLES[ErrorCategory.CORE]
    assert embed["description"].endswith(RID_FORMAT_ERROR)
    assert "42" not in embed["description"]


def test_build_request():
    sink = DiscordWebhookSink("https://localhost/api/webhooks/1/token", DEFAULT_RID)
    props = ECLogProps(ErrorCategory.SPEED, 7, 2)
    request = sink.build_request(props, "ñ text")
    header, body = request.split(b"\r\n\r\n", 1)
    lines = header.decode().split("\r\n")
    assert lines[0] == "POST /api/webhooks/1/token HTTP/1.1"
    assert lines[1] == "Host: localhost"
    assert "Content-Type: application/json" in lines
    length = next(int(line.split(": ")[1]) for line in lines if line.startswith("Content-Length"))
    assert length == len(body)
    assert json.loads(body.decode("utf-8")) == make_embed_document(props, "ñ text", DEFAULT_RID)


def test_constructor_rejects_bad_uri():
    with pytest.raises(ValueError):
        DiscordWebhookSink("localhost", DEFAULT_RID)