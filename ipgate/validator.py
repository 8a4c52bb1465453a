"""
Address normalization.

This module classifies and canonicalizes a raw address string before any
dataset is consulted, and converts it to the integer ordinal used as the
lookup key of range-keyed datasets.
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum
from typing import Union


class AddressFamily(Enum):
    """Address families understood by the resolver."""
    IPV4 = "IPv4"
    IPV6 = "IPv6"

    def __str__(self):
        return self.value

    @property
    def max_ordinal(self) -> int:
        """Largest ordinal representable in this family."""
        return (1 << 32) - 1 if self is AddressFamily.IPV4 else (1 << 128) - 1


@dataclass(frozen=True)
class NormalizedAddress:
    """A well-formed, non-local address ready for dataset lookups."""
    address: str
    family: AddressFamily
    ordinal: int

    @property
    def is_ipv6(self) -> bool:
        return self.family is AddressFamily.IPV6


@dataclass(frozen=True)
class InvalidAddress:
    """An address rejected before lookup."""
    raw: str
    reason: str

    LOCAL_OR_EMPTY = 'local-or-empty'
    MALFORMED = 'malformed'

    def to_dict(self) -> dict:
        return {'error': 'Invalid or local IP address', 'ip': self.raw}


class AddressNormalizer:
    """Validator and canonicalizer for IPv4 and IPv6 literals."""

    LOCAL_NAMES = frozenset({'localhost'})
    LOOPBACK_LITERALS = frozenset({'127.0.0.1', '::1'})

    def normalize(self, raw: str) -> Union[NormalizedAddress, InvalidAddress]:
        """
        Classify and canonicalize an address string.

        Never raises: every input maps to one of the two result types.

        Args:
            raw: Address as supplied by the caller

        Returns:
            NormalizedAddress for a usable literal, InvalidAddress otherwise
        """
        if not isinstance(raw, str):
            raw = ''

        candidate = raw.strip()
        if not candidate or candidate.lower() in self.LOCAL_NAMES:
            return InvalidAddress(raw, InvalidAddress.LOCAL_OR_EMPTY)

        if ':' in candidate:
            normalized = self._normalize_ipv6(candidate)
        else:
            normalized = self._normalize_ipv4(candidate)

        if normalized is None:
            return InvalidAddress(raw, InvalidAddress.MALFORMED)

        if normalized.address in self.LOOPBACK_LITERALS:
            return InvalidAddress(raw, InvalidAddress.LOCAL_OR_EMPTY)

        return normalized

    def _normalize_ipv4(self, candidate: str):
        octets = self._parse_octets(candidate)
        if octets is None:
            return None
        return NormalizedAddress(
            address='.'.join(str(octet) for octet in octets),
            family=AddressFamily.IPV4,
            ordinal=self._octets_to_ordinal(octets),
        )

    def _normalize_ipv6(self, candidate: str):
        # Zone identifiers are link-scoped and never present in datasets
        if '%' in candidate:
            return None
        try:
            ip_obj = ipaddress.IPv6Address(candidate)
        except ValueError:
            return None
        return NormalizedAddress(
            address=ip_obj.compressed,
            family=AddressFamily.IPV6,
            ordinal=int(ip_obj),
        )

    def _parse_octets(self, candidate: str):
        parts = candidate.split('.')
        if len(parts) != 4:
            return None

        octets = []
        for part in parts:
            # ASCII decimal digits only
            if not part or not part.isascii() or not part.isdigit():
                return None
            value = int(part)
            if value > 255:
                return None
            octets.append(value)
        return octets

    @staticmethod
    def _octets_to_ordinal(octets) -> int:
        a, b, c, d = octets
        return a * 16777216 + b * 65536 + c * 256 + d
