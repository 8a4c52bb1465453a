"""
IP2Location LITE range datasets.

IP2Location DB11 (geolocation, ISP, weather station, mobile carrier) and
IP2Proxy PX12 (anonymizing proxy and threat classification) are distributed
as CSV files whose first two columns are the numeric range bounds.
"""

from .base import RangeDataset, as_float, as_int, as_number, as_text
from .range_table import RangeTable

IP2LOCATION_PATH = 'IP2LOCATION-LITE-DB11.CSV/IP2LOCATION-LITE-DB11.CSV'
IP2LOCATION_IPV6_PATH = 'IP2LOCATION-LITE-DB11.IPV6.CSV/IP2LOCATION-LITE-DB11.IPV6.CSV'
IP2PROXY_PATH = 'IP2PROXY-LITE-PX12.CSV/IP2PROXY-LITE-PX12.CSV'
IP2PROXY_IPV6_PATH = 'IP2PROXY-LITE-PX12.IPV6.CSV/IP2PROXY-LITE-PX12.IPV6.CSV'

IP2LOCATION_COLUMNS = (
    'countryCode', 'countryName', 'regionName', 'cityName', 'isp', 'latitude',
    'longitude', 'domain', 'zipCode', 'timeZone', 'netspeed', 'iddCode',
    'areaCode', 'weatherStationCode', 'weatherStationName', 'mcc', 'mnc',
    'mobileBrand', 'elevation', 'usageType',
)

IP2PROXY_COLUMNS = (
    'proxyType', 'countryCode', 'countryName', 'regionName', 'cityName', 'isp',
    'domain', 'usageType', 'asn', 'as', 'lastSeen', 'threat', 'provider',
)


class IP2LocationDataset(RangeDataset):
    """Geolocation dataset from the IP2Location LITE DB11 CSV."""

    FIELD_MAP = {
        'country': ('countryName', as_text),
        'countryCode': ('countryCode', as_text),
        'region': ('regionName', as_text),
        'city': ('cityName', as_text),
        'isp': ('isp', as_text),
        'latitude': ('latitude', as_float),
        'longitude': ('longitude', as_float),
        'domain': ('domain', as_text),
        'zipCode': ('zipCode', as_text),
        'timeZone': ('timeZone', as_text),
        'netspeed': ('netspeed', as_text),
        'iddCode': ('iddCode', as_text),
        'areaCode': ('areaCode', as_text),
        'weatherStationCode': ('weatherStationCode', as_text),
        'weatherStationName': ('weatherStationName', as_text),
        'mcc': ('mcc', as_text),
        'mnc': ('mnc', as_text),
        'mobileBrand': ('mobileBrand', as_text),
        'elevation': ('elevation', as_number),
        'usageType': ('usageType', as_text),
    }

    def __init__(self, table: RangeTable):
        """Initialize the dataset around a loaded DB11 table."""
        super().__init__('ip2location', 'IP2Location', table, self.FIELD_MAP)


class IP2ProxyDataset(RangeDataset):
    """Proxy and threat dataset from the IP2Proxy LITE PX12 CSV."""

    FIELD_MAP = {
        'proxyType': ('proxyType', as_text),
        'country': ('countryName', as_text),
        'countryCode': ('countryCode', as_text),
        'region': ('regionName', as_text),
        'city': ('cityName', as_text),
        'isp': ('isp', as_text),
        'domain': ('domain', as_text),
        'usageType': ('usageType', as_text),
        'asn': ('asn', as_int),
        'asName': ('as', as_text),
        'lastSeen': ('lastSeen', as_number),
        'threat': ('threat', as_text),
        'provider': ('provider', as_text),
    }

    def __init__(self, table: RangeTable):
        """Initialize the dataset around a loaded PX12 table."""
        super().__init__('ip2proxy', 'IP2Proxy', table, self.FIELD_MAP)
