"""SOCKS5 handshake state machine.

This module drives one client connection through the stages

    greeting -> authenticating -> awaiting-request -> tunneling -> closed

with one handler method per stage. Each pre-tunnel stage reads exactly one
chunk from the client and decodes it as a whole message; bytes split over
several reads are not reassembled.

The handler supports:
- Username/password authentication only (RFC 1929)
- The CONNECT command only
- IPv4, IPv6 and domain name destinations
- A DNS pre-check for domains, answered with "host unreachable" on failure
- An idle timeout on the client while the handshake is in progress

Example:
    # The handler is automatically used by the SocksProxy server class
    server = SocksProxy(config)
    server.serve_forever()
"""

import socketserver
from collections.abc import Callable
from typing import TYPE_CHECKING, Final

from socks5_relay.core.exceptions import (
    AddressTypeError,
    DNSResolutionError,
    ProtocolError,
    UpstreamError,
    UpstreamTimeoutError,
)
from socks5_relay.core.lib.connection import Connection, Stage, connection_ids
from socks5_relay.core.lib.protocol import (
    CMD_CONNECT,
    METHOD_NO_ACCEPTABLE,
    REP_ADDR_NOT_SUPPORTED,
    REP_CMD_NOT_SUPPORTED,
    REP_HOST_UNREACHABLE,
    REP_SUCCEEDED,
    choose_method,
    decode_auth_request,
    decode_connect_request,
    decode_greeting,
    encode_auth_reply,
    encode_method_selection,
)
from socks5_relay.core.lib.relay import relay
from socks5_relay.core.lib.upstream import local_port
from socks5_relay.core.utils.utils import hex_dump

if TYPE_CHECKING:
    from socks5_relay.core.lib.proxy_server import SocksProxy

# Handshake messages are small; one read must hold a whole message
BUFFER_SIZE: Final = 4096


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle one incoming SOCKS5 connection."""

    server: "SocksProxy"
    conn: Connection

    def setup(self) -> None:
        self.conn = Connection(
            conn_id=connection_ids.next_id(),
            client=self.request,
            client_endpoint=(self.client_address[0], self.client_address[1]),
        )
        self.request.settimeout(self.server.config.idle_timeout)
        self.conn.log.info("client connected")

    def handle(self) -> None:
        """Run stage handlers until the connection is closed."""
        handlers: dict[Stage, Callable[[], None]] = {
            Stage.GREETING: self._greeting,
            Stage.AUTHENTICATING: self._authenticate,
            Stage.AWAITING_REQUEST: self._request,
            Stage.TUNNELING: self._tunnel,
        }
        try:
            while not self.conn.closed:
                handlers[self.conn.stage]()
        except Exception:
            self.conn.log.exception("handler error")
            self.conn.close("internal-error")

    def _read_message(self, label: str) -> bytes | None:
        """Read one handshake message, closing the connection if none arrives."""
        try:
            data = self.request.recv(BUFFER_SIZE)
        except TimeoutError:
            self.conn.close("client-timeout")
            return None
        except OSError as e:
            self.conn.log.debug("client error", err=str(e))
            self.conn.close("client-error")
            return None

        if not data:
            self.conn.close("client-end")
            return None

        self.conn.log.debug(f"{label}-bytes", hex=hex_dump(data))
        return data

    def _greeting(self) -> None:
        data = self._read_message("greeting")
        if data is None:
            return

        try:
            greeting = decode_greeting(data)
        except ProtocolError:
            self.conn.log.warning("bad-greeting")
            self.conn.close("bad-greeting")
            return

        method = choose_method(greeting.methods)
        self.conn.send(encode_method_selection(method))
        if method == METHOD_NO_ACCEPTABLE:
            self.conn.log.warning("no-acceptable-auth-method", offered=list(greeting.methods))
            self.conn.close("no-auth-method")
            return

        self.conn.advance(Stage.AUTHENTICATING)

    def _authenticate(self) -> None:
        data = self._read_message("auth")
        if data is None:
            return

        try:
            auth = decode_auth_request(data)
        except ProtocolError:
            self.conn.send(encode_auth_reply(success=False))
            self.conn.log.warning("bad-auth-version")
            self.conn.close("bad-auth-version")
            return

        ok = self.server.validator.validate(auth.username, auth.password)
        self.conn.send(encode_auth_reply(success=ok))
        if not ok:
            self.conn.log.warning("auth-failed", user=auth.username)
            self.conn.close("auth-failed")
            return

        self.conn.advance(Stage.AWAITING_REQUEST)

    def _request(self) -> None:
        data = self._read_message("request")
        if data is None:
            return

        try:
            request = decode_connect_request(data)
        except AddressTypeError as e:
            self.conn.log.warning("addr-type-not-supported", atyp=e.address_type)
            self.conn.close("addr-type-not-supported", REP_ADDR_NOT_SUPPORTED)
            return
        except ProtocolError:
            self.conn.log.warning("bad-request")
            self.conn.close("bad-request")
            return

        self.conn.set_destination(request.host, request.port)
        if request.command != CMD_CONNECT:
            self.conn.log.warning("cmd-not-supported", cmd=request.command)
            self.conn.close("cmd-not-supported", REP_CMD_NOT_SUPPORTED)
            return

        dial_host = request.host
        if request.is_domain:
            try:
                dial_host = self.server.resolver.lookup(request.host)
            except DNSResolutionError as e:
                self.conn.log.warning("dns-fail", host=request.host, err=str(e))
                self.conn.close("dns-fail", REP_HOST_UNREACHABLE)
                return

        self._open_tunnel(dial_host, request.port)

    def _open_tunnel(self, host: str, port: int) -> None:
        try:
            upstream = self.server.connector.connect(host, port)
        except UpstreamTimeoutError as e:
            self.conn.log.warning("upstream-timeout", dst=self.conn.dst, err=str(e))
            self.conn.close("upstream-timeout", e.reply)
            return
        except UpstreamError as e:
            self.conn.log.warning("upstream-error", dst=self.conn.dst, err=str(e))
            self.conn.close("upstream-error", e.reply)
            return

        if not self.conn.attach_upstream(upstream):
            return

        if not self.conn.send_reply(REP_SUCCEEDED, local_port(upstream)):
            self.conn.close("client-error")
            return

        self.conn.advance(Stage.TUNNELING)
        self.conn.log.info("tunnel-open", dst=self.conn.dst)

    def _tunnel(self) -> None:
        reason = relay(self.conn, self.server.config.connect_timeout)
        self.conn.close(reason)

    def finish(self) -> None:
        self.conn.close("client-close")
