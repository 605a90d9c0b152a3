"""Main entry point of the SOCKS proxy server.

This module exposes the public API of the proxy implementation while keeping
the component modules (codec, handshake, relay, listener) internal.

Example:
    from socks5_relay.core.config import ProxyConfig
    from socks5_relay.core.proxy import create_proxy_server, run_server

    server = create_proxy_server(ProxyConfig(host="127.0.0.1", port=1080))
    run_server(server)
"""

from .lib import SocksProxy, create_proxy_server, run_server

__all__ = ["create_proxy_server", "run_server", "SocksProxy"]
