"""
transport.py

Non-blocking HTTP transport on the Qt event loop.

QtTransport issues requests through a QNetworkAccessManager and reports each
completion through callbacks, invoked on the same thread that issued the
request. Nothing here interprets status codes; that is AuthorityClient's job.
"""

from __future__ import annotations

import logging
from typing import Callable, NamedTuple, Optional

from PyQt5 import QtCore, QtNetwork

log = logging.getLogger(__name__)


class HttpReply(NamedTuple):
    status: int
    body: bytes


ReplyCallback = Callable[[HttpReply], None]
ErrorCallback = Callable[[str], None]


class QtTransport(QtCore.QObject):
    """
    Thin wrapper over QNetworkAccessManager.

    Usage:
      - transport = QtTransport("http://192.168.4.1", timeout_ms=2000)
      - transport.send("GET", "/results", None, None, on_reply, on_error)
      - exactly one of on_reply(HttpReply) / on_error(str) fires per request
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 2000,
        manager: Optional[QtNetwork.QNetworkAccessManager] = None,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._base_url = base_url.rstrip("/")
        self._timeout_ms = max(1, int(timeout_ms))
        self._manager = manager or QtNetwork.QNetworkAccessManager(self)

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_base_url(self, base_url: str) -> None:
        self._base_url = base_url.rstrip("/")

    def set_timeout(self, timeout_ms: int) -> None:
        self._timeout_ms = max(1, int(timeout_ms))

    def send(
        self,
        method: str,
        path: str,
        body: Optional[bytes],
        content_type: Optional[str],
        on_reply: ReplyCallback,
        on_error: ErrorCallback,
    ) -> None:
        request = QtNetwork.QNetworkRequest(QtCore.QUrl(self._base_url + path))
        request.setTransferTimeout(self._timeout_ms)
        if content_type:
            request.setHeader(QtNetwork.QNetworkRequest.ContentTypeHeader, content_type)

        if method == "GET":
            reply = self._manager.get(request)
        elif method == "POST":
            reply = self._manager.post(request, QtCore.QByteArray(body or b""))
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")

        reply.finished.connect(lambda: self._on_finished(reply, on_reply, on_error))

    def _on_finished(
        self,
        reply: QtNetwork.QNetworkReply,
        on_reply: ReplyCallback,
        on_error: ErrorCallback,
    ) -> None:
        try:
            status = reply.attribute(QtNetwork.QNetworkRequest.HttpStatusCodeAttribute)
            # 4xx/5xx also set error(), but still carry a status for the caller
            if status is None:
                message = reply.errorString() or "No HTTP response"
                log.debug("Request %s failed: %s", reply.url().toString(), message)
                on_error(message)
                return
            on_reply(HttpReply(int(status), bytes(reply.readAll())))
        finally:
            reply.deleteLater()
