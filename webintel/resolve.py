"""DNS resolution (dnspython)."""

from __future__ import annotations

import ipaddress

import dns.exception
import dns.resolver

from .errors import NetworkError


def resolve_ipv4(hostname: str, *, timeout: float = 10.0) -> list[str]:
    """Return the A records for hostname (or the hostname itself if it is an IP).

    Raises NetworkError(transient=False) when the name does not resolve and
    NetworkError(transient=True) when the resolver timed out.
    """
    try:
        ipaddress.ip_address(hostname)
        return [hostname]
    except ValueError:
        pass

    resolver = dns.resolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout

    try:
        answers = resolver.resolve(hostname, "A")
    except dns.exception.Timeout as e:
        raise NetworkError(f"DNS timeout for {hostname}", transient=True) from e
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers) as e:
        raise NetworkError(f"Could not resolve domain: {hostname}", transient=False) from e
    except dns.exception.DNSException as e:
        raise NetworkError(f"DNS lookup failed for {hostname}: {e}", transient=False) from e

    ips = [str(r) for r in answers]
    if not ips:
        raise NetworkError(f"No A records for {hostname}", transient=False)
    return ips
