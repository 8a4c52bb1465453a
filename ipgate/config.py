"""
Secure configuration management for ipgate.

This module provides handling of configuration values including dataset
locations, download credentials, admission-control limits and debug switches.
All values come from the environment.
"""

import os
import logging
from typing import Optional, Dict, Any
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTION = 'Contains data from MaxMind GeoLite2, IP2Location LITE, and IP2Proxy LITE.'


class SecureConfig:
    """Environment-backed settings for ipgate."""

    # service -> (min, max) credential length
    CREDENTIAL_LENGTHS = {
        'maxmind': (16, 64),
        'ip2location': (32, 80),
    }

    # service -> vendor-documented variable names tried after IPGATE_*
    CREDENTIAL_ALIASES = {
        'maxmind': ('MAXMIND_LICENSE_KEY', 'GEOIP_LICENSE_KEY'),
        'ip2location': ('IP2LOCATION_TOKEN', 'IP2LOCATION_DOWNLOAD_TOKEN'),
    }

    ENDPOINTS = {
        'maxmind': 'https://download.maxmind.com/app/geoip_download',
        'ip2location': 'https://www.ip2location.com/download/',
    }

    def __init__(self):
        self._config_cache: Dict[str, Any] = {}
        self._sensitive_keys = {'api_key', 'license_key', 'token', 'secret'}

    def get_api_key(self, service: str) -> Optional[str]:
        """
        Look up the download credential for a dataset vendor.

        IPGATE_<SERVICE>_API_KEY is tried first, then the vendor's own
        variable names. A malformed IPGATE_ value is not replaced by an alias.

        Args:
            service: Vendor name ('maxmind' or 'ip2location')

        Returns:
            The stripped credential, or None
        """
        primary = f"IPGATE_{service.upper()}_API_KEY"
        candidates = [primary] if os.getenv(primary) else list(self.CREDENTIAL_ALIASES.get(service.lower(), ()))

        for env_var in candidates:
            value = os.getenv(env_var)
            if not value:
                continue
            if self._validate_api_key_format(value, service):
                logger.info(f"Credential loaded for {service} from {env_var}")
                return value.strip()
            logger.warning(f"Ignoring malformed credential in {env_var}")

        logger.debug(f"No credential found for service: {service}")
        return None

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Read IPGATE_<KEY>, caching everything except credential-like keys."""
        if key in self._config_cache:
            return self._config_cache[key]

        value = os.getenv(f"IPGATE_{key.upper()}", default)
        if not any(sensitive in key.lower() for sensitive in self._sensitive_keys):
            self._config_cache[key] = value
        return value

    def _validate_api_key_format(self, api_key: str, service: str) -> bool:
        api_key = (api_key or '').strip()
        if any(char.isspace() for char in api_key):
            return False
        low, high = self.CREDENTIAL_LENGTHS.get(service.lower(), (8, 128))
        return low <= len(api_key) <= high

    def get_endpoint_url(self, service: str) -> Optional[str]:
        """
        Download endpoint for a dataset vendor.

        Returns:
            HTTPS URL, or None for unknown services and non-HTTPS entries
        """
        url = self.ENDPOINTS.get(service.lower())
        if url and not url.startswith('https://'):
            logger.warning(f"Non-HTTPS endpoint configured for {service}: {url}")
            return None
        return url

    def get_data_dir(self) -> Path:
        """
        Get the directory holding the dataset files.

        Returns:
            Dataset directory path (default: ./data)
        """
        return Path(os.getenv('IPGATE_DATA_DIR', 'data'))

    def get_rate_limit_window(self, default: float = 60.0) -> float:
        """
        Get the admission-control window length in seconds, bounded to 1-3600.
        """
        try:
            window = float(os.getenv('IPGATE_RATE_LIMIT_WINDOW', default))
            return max(1.0, min(3600.0, window))
        except (ValueError, TypeError):
            return default

    def get_rate_limit_max(self, default: int = 100) -> int:
        """
        Get the number of requests allowed per caller and window, bounded to 1-100000.
        """
        try:
            limit = int(os.getenv('IPGATE_RATE_LIMIT_MAX', default))
            return max(1, min(100000, limit))
        except (ValueError, TypeError):
            return default

    def get_attribution_notice(self) -> str:
        """
        Get the notice naming the datasets whose license requires attribution.

        Returns:
            Attribution notice string
        """
        notice = os.getenv('IPGATE_ATTRIBUTION', '').strip()
        return notice or DEFAULT_ATTRIBUTION

    def get_request_timeout(self, default: float = 60.0) -> float:
        """
        Get download timeout with bounds.

        Args:
            default: Default timeout value

        Returns:
            Bounded timeout value
        """
        try:
            timeout = float(self.get_config_value('request_timeout', default))
            # Dataset archives are large: 1-300 seconds
            return max(1.0, min(300.0, timeout))
        except (ValueError, TypeError):
            return default

    def is_debug_mode(self) -> bool:
        """
        Check if debug mode is enabled.

        Returns:
            True if debug mode is enabled
        """
        debug_value = os.getenv('IPGATE_DEBUG', 'false').lower()
        return debug_value in ('true', '1', 'yes', 'on')

    def get_debug_level(self) -> str:
        """
        Get debug level for controlling verbosity.

        Returns:
            Debug level: 'basic', 'detailed', or 'verbose'
        """
        if not self.is_debug_mode():
            return 'off'

        level = os.getenv('IPGATE_DEBUG_LEVEL', 'basic').lower()
        if level in ('basic', 'detailed', 'verbose'):
            return level
        return 'basic'

# Global configuration instance
config = SecureConfig()
