"""Core proxy server implementation.

This package contains the core components of the SOCKS5 proxy:
- Wire codec for the SOCKS5 and RFC 1929 messages
- Credential validation
- Destination resolution and upstream connection
- The per-connection handshake state machine and relay
- The threaded listener
- Configuration and exception types

The core package is independent of the command-line interface, which only
builds a configuration and hands it over.
"""
