"""
Unit tests for the attribution resolver.
"""

import json
import pytest
from unittest.mock import patch, MagicMock
from ipgate.datasets.base import BaseDataset
from ipgate.resolver import AttributedRecord, AttributionResolver, NotFound
from ipgate.validator import AddressFamily, InvalidAddress

NOTICE = 'Contains data from Test Datasets.'


class FakeDataset(BaseDataset):
    """Dataset returning canned fields per canonical address."""

    def __init__(self, key, name, records, families=(AddressFamily.IPV4, AddressFamily.IPV6)):
        super().__init__(key, name, families)
        self.records = records
        self.calls = []

    def lookup(self, address):
        self.calls.append(address.address)
        return self.records.get(address.address)


class TestAttributionResolver:
    """Test cases for AttributionResolver."""

    def setup_method(self):
        """Set up test fixtures."""
        self.city = FakeDataset('maxmind_city', 'MaxMind', {
            '8.8.8.8': {'country': 'United States', 'countryCode': 'US'},
            '2001:4860:4860::8888': {'country': 'United States'},
        })
        self.asn = FakeDataset('maxmind_asn', 'MaxMind ASN', {
            '8.8.8.8': {'asn': 15169, 'organization': 'GOOGLE', 'isp': 'GOOGLE'},
        })
        self.proxy = FakeDataset('ip2proxy', 'IP2Proxy', {
            '8.8.8.8': {'country': 'United States of America', 'proxyType': 'DCH'},
            '5.6.7.8': {'proxyType': 'VPN', 'threat': 'SPAM'},
        }, families=(AddressFamily.IPV4,))
        self.resolver = AttributionResolver([self.city, self.asn, self.proxy], attribution_notice=NOTICE)

    def test_resolve_merges_sources(self):
        """Test a multi-source match produces one record."""
        record = self.resolver.resolve('8.8.8.8')

        assert isinstance(record, AttributedRecord)
        assert record.address == '8.8.8.8'
        assert record.family is AddressFamily.IPV4
        assert record.fields['country'] == 'United States'
        assert record.fields['asn'] == 15169
        assert record.fields['proxyType'] == 'DCH'
        assert record.sources == ('MaxMind', 'MaxMind ASN', 'IP2Proxy')
        assert record.attribution_notice == NOTICE

    def test_output_contract(self):
        """Test the rendered payload keys and order."""
        result = self.resolver.lookup('8.8.8.8')

        assert list(result)[:3] == ['ip', 'ipType', 'ipv4']
        assert result['ip'] == '8.8.8.8'
        assert result['ipType'] == 'IPv4'
        assert result['ipv4'] == '8.8.8.8'
        assert 'ipv6' not in result
        assert result['source'] == 'MaxMind + MaxMind ASN + IP2Proxy'
        assert result['sources'] == ['MaxMind', 'MaxMind ASN', 'IP2Proxy']
        assert result['attribution'] == NOTICE
        assert list(result)[-1] == 'attribution'

    def test_ipv6_skips_ipv4_only_datasets(self):
        """Test IPv6 lookups never query IPv4-only tables."""
        result = self.resolver.lookup('2001:4860:4860:0000:0000:0000:0000:8888')

        assert result['ipType'] == 'IPv6'
        assert result['ipv6'] == '2001:4860:4860::8888'
        assert 'ipv4' not in result
        assert self.proxy.calls == []
        assert self.city.calls == ['2001:4860:4860::8888']

    def test_invalid_address_not_queried(self):
        """Test local input short-circuits before any dataset."""
        result = self.resolver.resolve('127.0.0.1')

        assert isinstance(result, InvalidAddress)
        assert result.to_dict() == {'error': 'Invalid or local IP address', 'ip': '127.0.0.1'}
        assert self.city.calls == self.asn.calls == self.proxy.calls == []

    def test_malformed_address(self):
        """Test malformed input is reported as invalid."""
        assert self.resolver.lookup('999.1.1.1') == {'error': 'Invalid or local IP address', 'ip': '999.1.1.1'}

    def test_not_found(self):
        """Test a clean miss in every dataset."""
        result = self.resolver.resolve('9.9.9.9')

        assert result == NotFound('9.9.9.9')
        assert result.to_dict() == {'error': 'IP address not found in databases', 'ip': '9.9.9.9'}

    def test_single_source_match(self):
        """Test provenance with one contributing dataset."""
        result = self.resolver.lookup('5.6.7.8')

        assert result['proxyType'] == 'VPN'
        assert result['threat'] == 'SPAM'
        assert result['source'] == 'IP2Proxy'
        assert 'country' not in result

    def test_match_without_fields_is_not_not_found(self):
        """Test a hit with only absent fields still yields a record."""
        empty = FakeDataset('ip2location', 'IP2Location', {'10.1.2.3': {}})
        resolver = AttributionResolver([empty], attribution_notice=NOTICE)

        result = resolver.lookup('10.1.2.3')

        assert result == {
            'ip': '10.1.2.3',
            'ipType': 'IPv4',
            'ipv4': '10.1.2.3',
            'attribution': NOTICE,
        }

    def test_failing_dataset_contained(self):
        """Test an exception in one dataset does not fail the resolution."""
        broken = FakeDataset('ip2location', 'IP2Location', {})
        broken.lookup = MagicMock(side_effect=RuntimeError("decode failure"))
        resolver = AttributionResolver([broken, self.city], attribution_notice=NOTICE)

        result = resolver.lookup('8.8.8.8')

        assert result['country'] == 'United States'
        assert result['sources'] == ['MaxMind']

    def test_idempotent(self):
        """Test repeated resolution yields byte-identical output."""
        first = json.dumps(self.resolver.lookup('8.8.8.8'))
        second = json.dumps(self.resolver.lookup('8.8.8.8'))

        assert first == second

    def test_precedence_independent_of_registration_order(self):
        """Test registering datasets in another order gives the same record."""
        reordered = AttributionResolver([self.proxy, self.asn, self.city], attribution_notice=NOTICE)

        assert reordered.lookup('8.8.8.8') == self.resolver.lookup('8.8.8.8')

    def test_datasets_for_family(self):
        """Test dataset selection by family."""
        assert self.resolver.datasets_for(AddressFamily.IPV6) == [self.city, self.asn]
        assert len(self.resolver.datasets_for(AddressFamily.IPV4)) == 3

    def test_register_dataset_without_precedence_warns(self):
        """Test a dataset no field can come from is flagged."""
        with patch('ipgate.resolver.logger') as mock_logger:
            self.resolver.register_dataset(FakeDataset('custom', 'Custom', {}))

        mock_logger.warning.assert_called_once()
        assert self.resolver.datasets[-1].key == 'custom'

    def test_configured_attribution(self):
        """Test the attribution notice defaults to configuration."""
        with patch('ipgate.resolver.config') as mock_config:
            mock_config.get_attribution_notice.return_value = 'Configured notice'
            resolver = AttributionResolver([self.city])

        assert resolver.lookup('8.8.8.8')['attribution'] == 'Configured notice'

    def test_dataset_summary(self):
        """Test the dataset summary."""
        summary = self.resolver.get_dataset_summary()

        assert summary['total_datasets'] == 3
        assert summary['available_datasets'] == 3
        assert [d['name'] for d in summary['datasets']] == ['MaxMind', 'MaxMind ASN', 'IP2Proxy']

    def test_close(self):
        """Test close releases datasets that hold readers."""
        dataset = FakeDataset('maxmind_city', 'MaxMind', {})
        dataset.close = MagicMock()
        resolver = AttributionResolver([dataset, self.proxy])

        resolver.close()

        dataset.close.assert_called_once()


class TestFromDataDir:
    """Test cases for building a resolver from a data directory."""

    def test_empty_directory(self, tmp_path):
        """Test a directory without datasets still gives a working resolver."""
        resolver = AttributionResolver.from_data_dir(tmp_path)

        assert len(resolver.datasets) == 4
        assert resolver.lookup('8.8.8.8') == {'error': 'IP address not found in databases', 'ip': '8.8.8.8'}


class TestCommandLine:
    """Test cases for the ipgate command line."""

    def run_main(self, argv, tmp_path):
        from ipgate.resolver import main
        with patch.dict('os.environ', {'IPGATE_DATA_DIR': str(tmp_path)}):
            with patch('sys.argv', ['ipgate'] + argv):
                main()

    def test_list_datasets(self, tmp_path, capsys):
        """Test --list-datasets prints the registered datasets."""
        self.run_main(['--list-datasets', '--data-dir', str(tmp_path)], tmp_path)

        output = capsys.readouterr().out
        assert 'Total datasets: 4' in output
        assert 'Available datasets: 0' in output
        assert 'MaxMind ASN' in output
        assert 'IP2Proxy [IPv4]: unavailable, 0 ranges' in output

    def test_local_address_exits_with_error(self, tmp_path, capsys):
        """Test a local address prints the error payload and exits non-zero."""
        with pytest.raises(SystemExit) as exc_info:
            self.run_main(['--json', '127.0.0.1'], tmp_path)

        assert exc_info.value.code == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload == {'error': 'Invalid or local IP address', 'ip': '127.0.0.1'}

    def test_missing_target_prints_help(self, tmp_path, capsys):
        """Test running without a target shows usage."""
        with pytest.raises(SystemExit):
            self.run_main([], tmp_path)

        assert 'usage' in capsys.readouterr().out.lower()

    def test_resolved_address_printed(self, tmp_path, capsys):
        """Test a match is printed as readable lines."""
        resolver = AttributionResolver([FakeDataset('maxmind_city', 'MaxMind', {
            '1.2.3.4': {'country': 'Australia'},
        })], attribution_notice=NOTICE)

        with patch('ipgate.resolver.AttributionResolver.from_data_dir', return_value=resolver):
            self.run_main(['1.2.3.4'], tmp_path)

        output = capsys.readouterr().out
        assert 'Lookup results for 1.2.3.4 (IPv4):' in output
        assert 'country: Australia' in output
        assert 'source: MaxMind' in output
