"""
Result aggregation for combining partial answers from multiple datasets.

Each field of the merged record is taken from the first dataset, in that
field's declared precedence order, that supplies a value for it. The order is
configuration data and does not depend on the order datasets were loaded or
queried.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

GEO_SOURCES = ('maxmind_city', 'ip2proxy', 'ip2location')

# field -> dataset keys, highest precedence first. Declaration order is also
# the order fields appear in the output record.
FIELD_PRECEDENCE: Dict[str, Tuple[str, ...]] = {
    'country': GEO_SOURCES,
    'countryCode': GEO_SOURCES,
    'region': GEO_SOURCES,
    'regionCode': ('maxmind_city',),
    'city': GEO_SOURCES,
    'postalCode': ('maxmind_city',),
    'zipCode': ('ip2location',),
    'latitude': ('maxmind_city', 'ip2location'),
    'longitude': ('maxmind_city', 'ip2location'),
    'timezone': ('maxmind_city',),
    'timeZone': ('ip2location',),
    'isp': ('maxmind_asn', 'ip2proxy', 'ip2location'),
    'organization': ('maxmind_asn',),
    'asn': ('maxmind_asn', 'ip2proxy'),
    'asName': ('maxmind_asn', 'ip2proxy'),
    'domain': ('ip2proxy', 'ip2location'),
    'usageType': ('ip2proxy', 'ip2location'),
    'proxyType': ('ip2proxy',),
    'threat': ('ip2proxy',),
    'provider': ('ip2proxy',),
    'lastSeen': ('ip2proxy',),
    'netspeed': ('ip2location',),
    'iddCode': ('ip2location',),
    'areaCode': ('ip2location',),
    'weatherStationCode': ('ip2location',),
    'weatherStationName': ('ip2location',),
    'mcc': ('ip2location',),
    'mnc': ('ip2location',),
    'mobileBrand': ('ip2location',),
    'elevation': ('ip2location',),
}


class ResultAggregator:
    """Merges partial dataset results under a per-field precedence table."""

    def __init__(self, precedence: Optional[Mapping[str, Tuple[str, ...]]] = None):
        """
        Initialize the aggregator.

        Args:
            precedence: Field -> ordered dataset keys (default: FIELD_PRECEDENCE)
        """
        self.precedence = dict(precedence if precedence is not None else FIELD_PRECEDENCE)

    def aggregate_results(self, results: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Combine partial results into one field mapping with provenance.

        Args:
            results: One entry per matching dataset:
                {
                    'source': str,  # dataset key used by the precedence table
                    'name': str,    # human-readable dataset name
                    'fields': Dict[str, Any]
                }

        Returns:
            {
                'fields': Dict[str, Any],  # in precedence-table order
                'sources': List[str]       # names of datasets that supplied a
                                           # selected value, in first-use order
            }
        """
        by_source: Dict[str, Dict[str, Any]] = {}
        for result in results:
            by_source.setdefault(result['source'], result)

        fields: Dict[str, Any] = {}
        sources: List[str] = []

        for field_name, order in self.precedence.items():
            selected = self._select(field_name, order, by_source)
            if selected is None:
                continue
            value, name = selected
            fields[field_name] = value
            if name not in sources:
                sources.append(name)

        return {'fields': fields, 'sources': sources}

    def _select(self, field_name: str, order: Tuple[str, ...],
                by_source: Dict[str, Dict[str, Any]]):
        """Return (value, dataset name) from the first source supplying the field."""
        for source_key in order:
            result = by_source.get(source_key)
            if result is None:
                continue
            value = result.get('fields', {}).get(field_name)
            if self._is_present(value):
                return value, result.get('name', source_key)
        return None

    @staticmethod
    def _is_present(value: Any) -> bool:
        if value is None:
            return False
        if isinstance(value, str) and not value.strip():
            return False
        return True
