"""One-shot listener that captures the OAuth redirect from the user's browser."""
from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from ynab_updater.errors import AuthFlowError

LOGGER = logging.getLogger(__name__)

SUCCESS_RESPONSE = (
    b"HTTP/1.1 200 OK\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"Content-Length: 7\r\n"
    b"Connection: close\r\n"
    b"\r\n"
    b"success"
)
DEFAULT_MAX_REQUEST_BYTES = 8192
_HEADER_TERMINATORS = (b"\r\n\r\n", b"\n\n")


class RedirectReceiver:
    """Bind ``bind_addr``, accept a single connection and pull ``code`` out of it.

    ``timeout`` (seconds) bounds the wait for the browser and every read from
    it. ``None`` waits forever.
    """

    def __init__(
        self,
        bind_addr: Tuple[str, int],
        *,
        timeout: Optional[float] = None,
        max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
    ) -> None:
        self._bind_addr = bind_addr
        self._timeout = timeout
        self._max_request_bytes = max_request_bytes
        self._listener: Optional[socket.socket] = None

    def __enter__(self) -> "RedirectReceiver":
        host, port = self._bind_addr
        try:
            self._listener = socket.create_server((host, port))
        except OSError as exc:
            raise AuthFlowError(f"Unable to listen for the login redirect on {host}:{port}: {exc}") from exc
        self._listener.settimeout(self._timeout)
        return self

    def __exit__(self, *exc_info) -> None:
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    @property
    def address(self) -> Tuple[str, int]:
        if self._listener is None:
            raise RuntimeError("RedirectReceiver is not bound")
        return self._listener.getsockname()[:2]

    def wait_for_code(self) -> str:
        if self._listener is None:
            raise RuntimeError("RedirectReceiver is not bound")
        LOGGER.info("Waiting for auth code redirect on %s:%s", *self.address)
        try:
            connection, peer = self._listener.accept()
        except socket.timeout as exc:
            raise AuthFlowError(f"No login redirect arrived within {self._timeout} seconds") from exc

        with connection:
            connection.settimeout(self._timeout)
            LOGGER.debug("Redirect connection from %s", peer)
            head = read_request_head(connection, self._max_request_bytes)
            try:
                connection.sendall(SUCCESS_RESPONSE)
            except OSError as exc:
                LOGGER.warning("Unable to answer the login redirect: %s", exc)

        return extract_code(parse_request_target(head))


def await_code(bind_addr: Tuple[str, int], *, timeout: Optional[float] = None) -> str:
    """Block until the browser is redirected to ``bind_addr`` and return the auth code."""

    with RedirectReceiver(bind_addr, timeout=timeout) as receiver:
        return receiver.wait_for_code()


def read_request_head(connection: socket.socket, max_bytes: int = DEFAULT_MAX_REQUEST_BYTES) -> bytes:
    """Read from ``connection`` until the request line and headers are complete.

    Stops early if the peer closes the connection; the caller decides whether
    what arrived is usable.
    """

    buffer = bytearray()
    while not _head_complete(buffer):
        try:
            chunk = connection.recv(1024)
        except socket.timeout as exc:
            raise AuthFlowError("Timed out reading the login redirect request") from exc
        except OSError as exc:
            raise AuthFlowError(f"Unable to read the login redirect request: {exc}") from exc
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise AuthFlowError(f"Login redirect request exceeds {max_bytes} bytes")
    return bytes(buffer)


def parse_request_target(head: bytes) -> str:
    """Return the request target (path and query) from a raw request head."""

    request_line = head.split(b"\n", 1)[0].rstrip(b"\r")
    try:
        text = request_line.decode("ascii")
    except UnicodeDecodeError as exc:
        raise AuthFlowError("Login redirect request line is not ASCII") from exc

    parts = text.split()
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise AuthFlowError(f"Malformed login redirect request line: {text!r}")
    return parts[1]


def extract_code(target: str) -> str:
    query = parse_qs(urlsplit(target).query)
    codes = query.get("code")
    if not codes:
        raise AuthFlowError("Login redirect did not include an auth code")
    return codes[0]


def _head_complete(buffer: bytearray) -> bool:
    return any(terminator in buffer for terminator in _HEADER_TERMINATORS)
