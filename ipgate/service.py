"""
Transport-facing request handling.

This module turns inbound lookup requests into (status, payload) pairs
independent of any web framework: it derives the caller address from
connection and proxy headers, applies admission control, and delegates to
the resolver.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from . import __version__
from .admission import FixedWindowRateLimiter
from .resolver import AttributionResolver
from .security import security

Response = Tuple[int, Dict[str, Any]]

ATTRIBUTION_LINKS = ['https://www.maxmind.com', 'https://lite.ip2location.com']


class IPLookupService:
    """Request handlers for the lookup, health and info endpoints."""

    LOCAL_CALLERS = frozenset({'127.0.0.1', '::1'})

    def __init__(self, resolver: AttributionResolver,
                 rate_limiter: Optional[FixedWindowRateLimiter] = None):
        """
        Initialize the service.

        Args:
            resolver: Resolver answering lookups
            rate_limiter: Admission control applied to lookup requests
                (default: FixedWindowRateLimiter with configured limits)
        """
        self.resolver = resolver
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter()

    def get_client_address(self, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
        """
        Derive the caller's address, trusting reverse-proxy headers.

        Args:
            headers: Request headers (names matched case-insensitively)
            remote_addr: Address of the TCP peer

        Returns:
            Caller address, '' if nothing is known
        """
        lowered = {key.lower(): value for key, value in headers.items()}
        forwarded_for = lowered.get('x-forwarded-for', '')
        first_hop = forwarded_for.split(',')[0].strip() if forwarded_for else ''

        client = (lowered.get('cf-connecting-ip') or lowered.get('x-real-ip')
                  or first_hop or remote_addr or '')
        client = client.strip()

        if client.lower().startswith('::ffff:'):
            client = client[len('::ffff:'):]
        if client == '::1':
            client = '127.0.0.1'
        return client

    def handle_current_ip(self, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> Response:
        """Look up the caller's own address."""
        client = self.get_client_address(headers, remote_addr)
        rejected = self._admit(client)
        if rejected:
            return rejected

        if client in self.LOCAL_CALLERS:
            return 200, {'error': 'Localhost access', 'ip': client}
        return 200, self.resolver.lookup(client)

    def handle_ip(self, target: str, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> Response:
        """Look up an explicitly requested address."""
        rejected = self._admit(self.get_client_address(headers, remote_addr))
        if rejected:
            return rejected
        return 200, self.resolver.lookup(target)

    def _admit(self, client: str) -> Optional[Response]:
        identifier = client or 'unknown'
        if self.rate_limiter.allow(identifier):
            return None
        return 429, {
            'error': 'Too many requests. Please try again later.',
            'retryAfter': math.ceil(self.rate_limiter.retry_after(identifier)),
        }

    def health(self) -> Response:
        return 200, {'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()}

    def info(self) -> Response:
        """API version and dataset information."""
        summary = self.resolver.get_dataset_summary()
        return 200, {
            'version': __version__,
            'databases': list(dict.fromkeys(d['name'] for d in summary['datasets'])),
            'availableDatabases': list(dict.fromkeys(d['name'] for d in summary['datasets']
                                                     if d['available'])),
            'supportedTypes': ['IPv4', 'IPv6'],
        }

    def attribution(self) -> Response:
        return 200, {
            'attribution': self.resolver.attribution_notice,
            'links': list(ATTRIBUTION_LINKS),
        }

    def response_headers(self) -> Dict[str, str]:
        """Headers every response carries."""
        return security.get_response_headers()
