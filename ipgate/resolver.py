"""
Main resolver for multi-source IP attribution.

This module coordinates address normalization, the dataset lookups for the
address family, and the precedence merge that produces one attributed record.
"""

import sys
import json
import time
import logging
import argparse
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .validator import AddressFamily, AddressNormalizer, InvalidAddress, NormalizedAddress
from .aggregator import ResultAggregator
from .datasets.base import BaseDataset
from .datasets.loader import DatasetLoader
from .config import config
from .debug import debug_logger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttributedRecord:
    """Merged answer for one address."""
    address: str
    family: AddressFamily
    fields: Dict[str, Any]
    sources: Tuple[str, ...]
    attribution_notice: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Render the record in output key order."""
        output: Dict[str, Any] = {
            'ip': self.address,
            'ipType': str(self.family),
        }
        if self.family is AddressFamily.IPV6:
            output['ipv6'] = self.address
        else:
            output['ipv4'] = self.address
        output.update(self.fields)
        if self.sources:
            output['source'] = ' + '.join(self.sources)
            output['sources'] = list(self.sources)
        if self.attribution_notice:
            output['attribution'] = self.attribution_notice
        return output


@dataclass(frozen=True)
class NotFound:
    """A well-formed address that no dataset matched."""
    address: str

    def to_dict(self) -> Dict[str, Any]:
        return {'error': 'IP address not found in databases', 'ip': self.address}


Resolution = Union[AttributedRecord, NotFound, InvalidAddress]


class AttributionResolver:
    """Resolves addresses against every registered dataset."""

    def __init__(self, datasets: Optional[Iterable[BaseDataset]] = None,
                 normalizer: Optional[AddressNormalizer] = None,
                 aggregator: Optional[ResultAggregator] = None,
                 attribution_notice: Optional[str] = None):
        """
        Initialize the resolver.

        Args:
            datasets: Datasets to register, in registration order
            normalizer: Address normalizer (default: AddressNormalizer())
            aggregator: Precedence merge (default: ResultAggregator())
            attribution_notice: Notice attached to every record (default:
                configured notice)
        """
        self.normalizer = normalizer or AddressNormalizer()
        self.aggregator = aggregator or ResultAggregator()
        if attribution_notice is None:
            attribution_notice = config.get_attribution_notice()
        self.attribution_notice = attribution_notice
        self.datasets: List[BaseDataset] = []
        for dataset in datasets or ():
            self.register_dataset(dataset)

    @classmethod
    def from_data_dir(cls, data_dir=None, loader: Optional[DatasetLoader] = None) -> 'AttributionResolver':
        """
        Build a resolver over the shipped datasets found in a directory.

        Args:
            data_dir: Dataset directory (default: configured data dir)
            loader: Loader to use; its reports describe what was loaded

        Returns:
            Resolver with every dataset registered, including empty ones
        """
        loader = loader or DatasetLoader()
        resolver = cls(loader.load_default_datasets(data_dir))
        available = [d.name for d in resolver.datasets if d.is_available()]
        if available:
            logger.info(f"Datasets ready: {', '.join(available)}")
        else:
            logger.warning("No dataset could be loaded; every lookup will report not found")
        return resolver

    def register_dataset(self, dataset: BaseDataset):
        """Register a dataset to be consulted by resolve()."""
        if not any(dataset.key in order for order in self.aggregator.precedence.values()):
            logger.warning(f"Dataset {dataset.name} ({dataset.key}) has no field precedence "
                           f"entries and will never contribute")
        self.datasets.append(dataset)

    def datasets_for(self, family: AddressFamily) -> List[BaseDataset]:
        """Datasets applicable to an address family, in registration order."""
        return [dataset for dataset in self.datasets if dataset.supports(family)]

    def resolve(self, raw_address: str) -> Resolution:
        """
        Resolve an address to a merged, attributed record.

        Args:
            raw_address: Address as supplied by the caller

        Returns:
            AttributedRecord on success, NotFound when no dataset matched,
            InvalidAddress for empty, local or malformed input
        """
        start_time = time.time()
        debug_logger.log_resolution_start(str(raw_address))

        normalized = self.normalizer.normalize(raw_address)
        if isinstance(normalized, InvalidAddress):
            return normalized

        results = self._query_datasets(normalized)

        total_time = time.time() - start_time
        debug_logger.log_resolution_complete(normalized.address, total_time, len(results))

        if not results:
            return NotFound(normalized.address)

        merged = self.aggregator.aggregate_results(results)
        return AttributedRecord(
            address=normalized.address,
            family=normalized.family,
            fields=merged['fields'],
            sources=tuple(merged['sources']),
            attribution_notice=self.attribution_notice,
        )

    def _query_datasets(self, address: NormalizedAddress) -> List[Dict[str, Any]]:
        results = []
        for dataset in self.datasets_for(address.family):
            try:
                fields = dataset.lookup(address)
            except Exception as e:
                logger.warning(f"Dataset {dataset.name} failed for {address.address}: {e}")
                continue
            if fields is not None:
                results.append({
                    'source': dataset.key,
                    'name': dataset.name,
                    'fields': fields,
                })
        return results

    def lookup(self, raw_address: str) -> Dict[str, Any]:
        """
        Resolve an address and render the response payload.

        Returns:
            The attributed record, or an {'error': ..., 'ip': ...} payload
        """
        return self.resolve(raw_address).to_dict()

    def get_dataset_summary(self) -> Dict[str, Any]:
        """
        Get summary of registered datasets.

        Returns:
            Dictionary with dataset counts and details
        """
        described = [dataset.describe() for dataset in self.datasets]
        return {
            'total_datasets': len(described),
            'available_datasets': sum(1 for d in described if d['available']),
            'datasets': described,
        }

    def close(self):
        """Release dataset resources (open database readers)."""
        for dataset in self.datasets:
            close = getattr(dataset, 'close', None)
            if close is not None:
                close()


def main():
    """Command-line entry point for the IP attribution resolver."""
    parser = argparse.ArgumentParser(
        description='Multi-source IP address attribution',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Datasets (looked up in the data directory):
  GeoLite2-City.mmdb, GeoLite2-ASN.mmdb                     MaxMind GeoLite2
  IP2LOCATION-LITE-DB11.CSV/IP2LOCATION-LITE-DB11.CSV       IP2Location LITE
  IP2PROXY-LITE-PX12.CSV/IP2PROXY-LITE-PX12.CSV             IP2Proxy LITE

Environment Variables:
  IPGATE_DATA_DIR=data              - Dataset directory
  IPGATE_DEBUG=true                 - Enable debug mode with diagnostic output
  IPGATE_DEBUG_LEVEL=basic          - Debug verbosity: basic, detailed, verbose
  IPGATE_MAXMIND_API_KEY            - MaxMind license key for --update-datasets
  IPGATE_IP2LOCATION_API_KEY        - IP2Location download token for --update-datasets

Examples:
  ipgate 8.8.8.8                    # Resolve an address
  ipgate --json 2001:4860::8888     # Resolve and print JSON
  ipgate --list-datasets            # Show which datasets loaded
  ipgate --update-datasets          # Download the LITE datasets
"""
    )

    parser.add_argument('target', nargs='?', help='IP address to resolve')
    parser.add_argument('--data-dir', help='Directory holding the dataset files')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')
    parser.add_argument('--list-datasets', action='store_true',
                        help='List datasets and whether they loaded')
    parser.add_argument('--update-datasets', action='store_true',
                        help='Download the datasets into the data directory')
    parser.add_argument('--verbose', action='store_true', help='Show loading progress')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug mode with low-level diagnostic output')
    parser.add_argument('--debug-level', choices=['basic', 'detailed', 'verbose'], default='basic',
                        help='Debug verbosity level (default: basic)')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if args.debug:
        os.environ['IPGATE_DEBUG'] = 'true'
        os.environ['IPGATE_DEBUG_LEVEL'] = args.debug_level
        debug_logger.log_config_info()

    if args.data_dir:
        os.environ['IPGATE_DATA_DIR'] = args.data_dir

    if args.update_datasets:
        from .datasets.fetch import DatasetFetcher
        outcome = DatasetFetcher().fetch_all()
        for name, fetched in outcome.items():
            print(f"  {name}: {'updated' if fetched else 'not updated'}")
        if not args.target and not args.list_datasets:
            return

    resolver = AttributionResolver.from_data_dir()

    if args.list_datasets:
        summary = resolver.get_dataset_summary()
        print(f"Dataset Summary:")
        print(f"  Total datasets: {summary['total_datasets']}")
        print(f"  Available datasets: {summary['available_datasets']}")
        print()
        for dataset in summary['datasets']:
            status = 'loaded' if dataset['available'] else 'unavailable'
            entries = f", {dataset['entries']} ranges" if 'entries' in dataset else ''
            print(f"  - {dataset['name']} [{'/'.join(dataset['families'])}]: {status}{entries}")
        return

    if not args.target:
        parser.print_help()
        sys.exit(1)

    result = resolver.lookup(args.target)

    if args.json:
        print(json.dumps(result, ensure_ascii=False, indent=2))
    elif 'error' in result:
        print(f"Error: {result['error']} ({result.get('ip', '')})")
    else:
        print(f"Lookup results for {result['ip']} ({result['ipType']}):")
        for key, value in result.items():
            if key in ('ip', 'ipType', 'sources'):
                continue
            print(f"  {key}: {value}")

    if 'error' in result:
        sys.exit(1)


if __name__ == "__main__":
    main()
