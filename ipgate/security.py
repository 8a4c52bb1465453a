"""
Security utilities for ipgate.

This module provides output sanitization for log lines and the static
response headers the transport layer attaches to every answer.
"""

import re
import html
import logging
from typing import Dict

logger = logging.getLogger(__name__)

# Whole RFC 1918 dotted quads
PRIVATE_IPV4 = re.compile(
    r'(?<![\d.])'
    r'(?:10(?:\.\d{1,3}){3}'
    r'|172\.(?:1[6-9]|2\d|3[01])(?:\.\d{1,3}){2}'
    r'|192\.168(?:\.\d{1,3}){2})'
    r'(?!\.?\d)'
)


class SecurityValidator:
    """Security validation utilities."""

    def __init__(self):
        """Initialize security validator."""
        self._response_headers: Dict[str, str] = {
            'X-Content-Type-Options': 'nosniff',
            'X-Frame-Options': 'DENY',
            'X-XSS-Protection': '1; mode=block',
            'Referrer-Policy': 'strict-origin-when-cross-origin',
            'Permissions-Policy': 'geolocation=(), microphone=(), camera=()',
            'Cache-Control': 'no-store, no-cache, must-revalidate, proxy-revalidate',
            'Pragma': 'no-cache',
            'Expires': '0',
        }

    def get_response_headers(self) -> Dict[str, str]:
        """
        Get the headers attached to every lookup response.

        Returns:
            Copy of the static header mapping
        """
        return dict(self._response_headers)

    def sanitize_output_text(self, text: str, max_length: int = 1000) -> str:
        """
        Sanitize text for safe output (prevent injection attacks).

        Args:
            text: Text to sanitize
            max_length: Maximum allowed length

        Returns:
            Sanitized text
        """
        if not text:
            return ""

        text = str(text)[:max_length]

        # HTML escape to prevent XSS-like attacks in logs
        text = html.escape(text, quote=True)

        sanitized = ""
        for char in text:
            if char.isprintable() or char in {' ', '\t', '\n'}:
                sanitized += char
            else:
                sanitized += f"\\x{ord(char):02x}"

        return sanitized

    def sanitize_error_message(self, error_msg: str, ip_address: str) -> str:
        """
        Sanitize error messages to prevent information disclosure.

        Args:
            error_msg: Original error message
            ip_address: IP address being processed

        Returns:
            Sanitized error message safe for logging
        """
        sanitized = str(error_msg)

        # Download credentials travel in query strings
        credential_patterns = [
            r'license_key=[^&\s]+',
            r'token=[^&\s]+',
            r'(?i)api[_\s-]*key[:\s=]+[\w\-]{8,}',
        ]

        for pattern in credential_patterns:
            sanitized = re.sub(pattern, '[REDACTED]', sanitized)

        # Remove internal paths
        sanitized = re.sub(r'/[a-zA-Z0-9/_\-\.]+\.(py|mmdb|csv|CSV)', '[PATH]', sanitized)

        # Remove internal IP addresses (but keep the target)
        sanitized = PRIVATE_IPV4.sub(
            lambda match: match.group(0) if match.group(0) == ip_address else '[INTERNAL_IP]',
            sanitized,
        )

        return self.sanitize_output_text(sanitized, 500)

# Global security validator instance
security = SecurityValidator()
