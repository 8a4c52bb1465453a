"""
MaxMind GeoLite2 trie datasets.

GeoLite2 City and ASN are MaxMind DB (.mmdb) binary files searched as a
prefix trie by the maxminddb reader; these adapters flatten the nested
records it returns into output fields.
"""

from typing import Any, Dict, Mapping, Optional

from .base import TrieDataset

CITY_DB_NAME = 'GeoLite2-City.mmdb'
ASN_DB_NAME = 'GeoLite2-ASN.mmdb'


def _dig(record: Mapping[str, Any], *path) -> Optional[Any]:
    """Walk nested mappings and lists, returning None on any missing step."""
    node: Any = record
    for step in path:
        if isinstance(node, Mapping):
            node = node.get(step)
        elif isinstance(node, list) and isinstance(step, int):
            node = node[step] if -len(node) <= step < len(node) else None
        else:
            return None
        if node is None:
            return None
    return node


def _present(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None and value != ''}


class MaxMindCityDataset(TrieDataset):
    """Geolocation dataset from the GeoLite2 City database."""

    def __init__(self, reader: Any = None, language: str = 'en'):
        """
        Initialize the City dataset.

        Args:
            reader: Open maxminddb reader, or None if unavailable
            language: Key into the localized `names` mappings
        """
        super().__init__('maxmind_city', 'MaxMind', reader)
        self.language = language

    def extract_fields(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        language = self.language
        return _present({
            'country': _dig(record, 'country', 'names', language),
            'countryCode': _dig(record, 'country', 'iso_code'),
            'region': _dig(record, 'subdivisions', 0, 'names', language),
            'regionCode': _dig(record, 'subdivisions', 0, 'iso_code'),
            'city': _dig(record, 'city', 'names', language),
            'postalCode': _dig(record, 'postal', 'code'),
            'latitude': _dig(record, 'location', 'latitude'),
            'longitude': _dig(record, 'location', 'longitude'),
            'timezone': _dig(record, 'location', 'time_zone'),
        })


class MaxMindASNDataset(TrieDataset):
    """Autonomous system dataset from the GeoLite2 ASN database."""

    def __init__(self, reader: Any = None):
        super().__init__('maxmind_asn', 'MaxMind ASN', reader)

    def extract_fields(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        number = record.get('autonomous_system_number')
        organization = record.get('autonomous_system_organization')

        as_name = None
        if number is not None:
            as_name = f"AS{number} {organization}" if organization else f"AS{number}"

        return _present({
            'asn': number,
            'organization': organization,
            'isp': organization,
            'asName': as_name,
        })
