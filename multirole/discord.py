"""Log sink that posts messages as embeds to a Discord webhook over HTTPS."""

from __future__ import annotations

import json
import socket
import ssl
import threading
from datetime import datetime

from multirole.logsinks import (
    SVC_NAMES,
    ErrorCategory,
    Level,
    ServiceType,
    Sink,
    SinkLogProps,
    SvcLogProps,
)

SERVICE_MESSAGE_TITLE = "Service Message"
RID_FORMAT_ERROR = "\nCould not format the replay ID, check the configuration."

LEVEL_COLORS: dict[Level, int] = {
    Level.INFO: 0x00FF00,
    Level.WARN: 0xFFFF00,
    Level.ERROR: 0xFF0000,
}

EC_TITLES: dict[ErrorCategory, str] = {
    ErrorCategory.CORE: "Core Error",
    ErrorCategory.OFFICIAL: "Official Script Error",
    ErrorCategory.SPEED: "Speed Script Error",
    ErrorCategory.RUSH: "Rush Script Error",
    ErrorCategory.UNOFFICIAL: "Unofficial Script Error",
}

_HTTP_HEADER = (
    "POST {path} HTTP/1.1\r\n"
    "Host: {host}\r\n"
    "User-Agent: DyXel-Multirole/1.0\r\n"
    "Content-Length: {length}\r\n"
    "Content-Type: application/json\r\n\r\n"
)

_DEFAULT_PORTS = {"https": 443, "http": 80}
_TIMEOUT = 30.0


def split_webhook_uri(uri: str) -> tuple[str, str, str]:
    """Split a webhook URI into scheme, host and path."""
    scheme_colon = uri.find(":")
    if scheme_colon == -1:
        raise ValueError("Webhook URI: scheme colon not found")
    host_start = scheme_colon + 1 + len("//")
    if host_start > len(uri):
        raise ValueError("Webhook URI: too short")
    path_slash = uri.find("/", host_start)
    if path_slash == -1:
        raise ValueError("Webhook URI: no path")
    return uri[:scheme_colon], uri[host_start:path_slash], uri[path_slash:]


def make_embed_document(props: SinkLogProps, text: str, rid_format: str) -> dict:
    """The JSON document the webhook receives for one log message."""
    if isinstance(props, SvcLogProps):
        embed = {
            "title": SERVICE_MESSAGE_TITLE,
            "description": text,
            "color": LEVEL_COLORS[Level(props.level)],
            "footer": {"text": SVC_NAMES[ServiceType(props.service)]},
        }
    else:
        description = f"```\n{text}\n```Turn: {props.turn_counter} | "
        try:
            description += rid_format.format(props.replay_id)
        except (ValueError, IndexError, KeyError, AttributeError, TypeError):
            description += RID_FORMAT_ERROR
        embed = {
            "title": EC_TITLES[ErrorCategory(props.category)],
            "color": 0xFF0000,
            "description": description,
        }
    return {"embeds": [embed]}


class DiscordWebhookSink(Sink):
    """Posts every log message to a webhook; delivery happens in the background."""

    def __init__(self, uri: str, rid_format: str) -> None:
        self.scheme, self.host, self.path = split_webhook_uri(uri)
        self.rid_format = rid_format
        port = _DEFAULT_PORTS.get(self.scheme.lower(), self.scheme)
        try:
            self._endpoints = socket.getaddrinfo(self.host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise RuntimeError(f"Webhook: error resolving host {self.host!r}") from exc
        if not self._endpoints:
            raise RuntimeError(f"Webhook: error resolving host {self.host!r}")
        self._ssl = ssl.create_default_context()

    def build_request(self, props: SinkLogProps, text: str) -> bytes:
        """The full HTTP request posting the message."""
        body = json.dumps(
            make_embed_document(props, text, self.rid_format),
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")
        header = _HTTP_HEADER.format(path=self.path, host=self.host, length=len(body))
        return header.encode("utf-8") + body

    def log(self, ts: datetime, props: SinkLogProps, text: str) -> None:
        payload = self.build_request(props, text)
        threading.Thread(target=self._deliver, args=(payload,), daemon=True).start()

    def _deliver(self, payload: bytes) -> None:
        for family, socktype, proto, _, address in self._endpoints:
            try:
                with socket.socket(family, socktype, proto) as raw:
                    raw.settimeout(_TIMEOUT)
                    raw.connect(address)
                    with self._ssl.wrap_socket(raw, server_hostname=self.host) as tls:
                        tls.sendall(payload)
                        received = b""
                        while b"\r\n\r\n" not in received:
                            chunk = tls.recv(4096)
                            if not chunk:
                                break
                            received += chunk
                return
            except OSError:
                continue