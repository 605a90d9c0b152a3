"""DNS pre-check for domain destinations.

Domain names in a connect request are looked up before any TCP connect is
attempted, so that a lookup failure can be answered with "host unreachable"
(``0x04``) instead of a generic failure.

By default the system resolver is used and the connector is handed the
domain itself, which it resolves again on its own; the lookup is a check,
not a cache. When nameservers are configured, dnspython queries them
directly and the connector is handed the first resolved address, because
the system resolver may not agree with those servers.
"""

import socket
from typing import TYPE_CHECKING, cast

import dns.exception
import dns.resolver
from loguru import logger

from socks5_relay.core.exceptions import DNSResolutionError

if TYPE_CHECKING:
    from dns.resolver import Resolver

# DNS resolver constants
DEFAULT_TIMEOUT = 2.0  # seconds per nameserver
DEFAULT_LIFETIME = 5.0  # seconds per query
RECORD_TYPES = ("A", "AAAA")


class DNSResolver:
    """Resolve destination domains with the system resolver or dnspython."""

    def __init__(
        self,
        nameservers: tuple[str, ...] | list[str] = (),
        timeout: float = DEFAULT_TIMEOUT,
        lifetime: float = DEFAULT_LIFETIME,
    ) -> None:
        """Initialize the resolver.

        Args:
            nameservers: DNS servers to query; empty uses the system resolver
            timeout: Per-server timeout for dnspython queries
            lifetime: Total time allowed for one dnspython query
        """
        self.nameservers = list(nameservers)
        self.resolver: Resolver | None = None
        if self.nameservers:
            self.resolver = cast("Resolver", dns.resolver.Resolver(configure=False))
            self.resolver.nameservers = self.nameservers
            self.resolver.timeout = timeout
            self.resolver.lifetime = lifetime

    def _system_lookup(self, domain: str) -> str:
        try:
            addrinfo = socket.getaddrinfo(domain, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            raise DNSResolutionError(str(e)) from e
        if not addrinfo:
            raise DNSResolutionError(f"no addresses for {domain}")
        return domain

    def _configured_lookup(self, domain: str) -> str:
        assert self.resolver is not None
        errors = []
        for record_type in RECORD_TYPES:
            try:
                answer = self.resolver.resolve(domain, record_type)
                return str(answer[0])
            except dns.exception.DNSException as e:
                logger.debug(f"{record_type} lookup for {domain} failed: {e}")
                errors.append(str(e))
        raise DNSResolutionError("; ".join(errors))

    def lookup(self, domain: str) -> str:
        """Check that a domain resolves.

        Args:
            domain: Domain name from the connect request

        Returns:
            str: Host the upstream connector should dial

        Raises:
            DNSResolutionError: If the domain does not resolve
        """
        if self.resolver is None:
            return self._system_lookup(domain)
        return self._configured_lookup(domain)
