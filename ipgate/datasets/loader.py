"""
Dataset loading.

This module turns raw source files into queryable datasets exactly once at
startup. Loading is best-effort: malformed lines are skipped and counted, and
a missing or unreadable file degrades its dataset to "never matches" instead
of stopping the process.
"""

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import maxminddb

from ..config import config
from ..debug import debug_logger
from ..validator import AddressFamily
from .base import BaseDataset
from .range_table import RangeEntry, RangeTable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class LoadReport:
    """Outcome of loading one source file."""
    path: str
    status: str
    entries: int = 0
    lines_skipped: int = 0
    overlaps_dropped: int = 0

    LOADED = 'loaded'
    MISSING = 'missing'
    FAILED = 'failed'


class DatasetLoader:
    """Builds RangeTable and trie readers from files on disk."""

    SENTINELS = frozenset({'-', ''})

    def __init__(self):
        """Initialize the loader with an empty report list."""
        self.reports: List[LoadReport] = []

    def load_range_table(self, path: PathLike, columns: Sequence[str],
                         family: AddressFamily = AddressFamily.IPV4,
                         delimiter: str = ',') -> RangeTable:
        """
        Load a delimited range file into a RangeTable.

        The file is streamed line by line. The first two columns of each line
        are the inclusive range bounds as integers; the remaining columns are
        named by `columns` in order.

        Args:
            path: Source file path
            columns: Names of the columns following the two bounds
            family: Address family of the bounds
            delimiter: Column delimiter

        Returns:
            The loaded table; empty when the file is missing or unreadable
        """
        path = Path(path)
        report = LoadReport(str(path), LoadReport.LOADED)
        self.reports.append(report)

        if not path.exists():
            logger.warning(f"Dataset file not found, continuing without it: {path}")
            report.status = LoadReport.MISSING
            debug_logger.log_load_report(report)
            return RangeTable(family=family)

        entries = []
        try:
            with open(path, 'r', encoding='utf-8', errors='replace', newline='') as handle:
                for line in handle:
                    entry = self.parse_line(line, columns, family, delimiter)
                    if entry is None:
                        report.lines_skipped += 1
                    else:
                        entries.append(entry)
        except OSError as e:
            logger.error(f"Failed to read dataset file {path}: {e}")
            report.status = LoadReport.FAILED
            debug_logger.log_load_report(report)
            return RangeTable(family=family)

        table = RangeTable(entries, family=family)
        report.entries = len(table)
        report.overlaps_dropped = table.overlaps_dropped

        logger.info(f"Loaded {path.name}: {report.entries} entries "
                    f"({report.lines_skipped} lines skipped, {report.overlaps_dropped} overlapping)")
        debug_logger.log_load_report(report)
        return table

    def parse_line(self, line: str, columns: Sequence[str],
                   family: AddressFamily = AddressFamily.IPV4,
                   delimiter: str = ',') -> Optional[RangeEntry]:
        """
        Parse one source line.

        Args:
            line: Raw line including any line terminator
            columns: Names of the columns following the two bounds
            family: Address family of the bounds
            delimiter: Column delimiter

        Returns:
            RangeEntry, or None if the line is malformed
        """
        try:
            row = next(csv.reader([line], delimiter=delimiter), [])
        except csv.Error:
            return None

        if len(row) < 2:
            return None

        try:
            range_start = int(row[0].strip())
            range_end = int(row[1].strip())
        except ValueError:
            return None

        if range_start < 0 or range_end > family.max_ordinal or range_start > range_end:
            return None

        fields = {}
        for name, value in zip(columns, row[2:]):
            value = value.strip()
            if value not in self.SENTINELS:
                fields[name] = value

        return RangeEntry(range_start, range_end, fields)

    def open_trie(self, path: PathLike) -> Optional[Any]:
        """
        Open a MaxMind DB format database.

        Args:
            path: Database file path

        Returns:
            An open maxminddb reader, or None when the file is missing or
            cannot be opened
        """
        path = Path(path)
        report = LoadReport(str(path), LoadReport.LOADED)
        self.reports.append(report)

        if not path.exists():
            logger.warning(f"Database file not found, continuing without it: {path}")
            report.status = LoadReport.MISSING
            debug_logger.log_load_report(report)
            return None

        try:
            reader = maxminddb.open_database(str(path))
        except Exception as e:
            logger.error(f"Failed to open database {path}: {e}")
            report.status = LoadReport.FAILED
            debug_logger.log_load_report(report)
            return None

        logger.info(f"Opened {path.name} ({reader.metadata().database_type})")
        debug_logger.log_load_report(report)
        return reader

    def load_default_datasets(self, data_dir: Optional[PathLike] = None) -> List[BaseDataset]:
        """
        Build the shipped datasets from the files in a data directory.

        MaxMind GeoLite2 City and ASN, IP2Proxy PX12 and IP2Location DB11 are
        always returned (possibly empty). The IPv6 editions of the two CSV
        tables are added only when their files are present.

        Args:
            data_dir: Directory holding the files (default: configured data dir)

        Returns:
            Datasets in registration order
        """
        from .ip2location import (IP2LocationDataset, IP2ProxyDataset,
                                  IP2LOCATION_COLUMNS, IP2LOCATION_PATH, IP2LOCATION_IPV6_PATH,
                                  IP2PROXY_COLUMNS, IP2PROXY_PATH, IP2PROXY_IPV6_PATH)
        from .maxmind import MaxMindASNDataset, MaxMindCityDataset, CITY_DB_NAME, ASN_DB_NAME

        data_dir = Path(data_dir) if data_dir is not None else config.get_data_dir()
        logger.info(f"Loading datasets from {data_dir}")

        datasets: List[BaseDataset] = [
            MaxMindCityDataset(self.open_trie(data_dir / CITY_DB_NAME)),
            MaxMindASNDataset(self.open_trie(data_dir / ASN_DB_NAME)),
            IP2ProxyDataset(self.load_range_table(data_dir / IP2PROXY_PATH, IP2PROXY_COLUMNS)),
            IP2LocationDataset(self.load_range_table(data_dir / IP2LOCATION_PATH, IP2LOCATION_COLUMNS)),
        ]

        optional_ipv6 = [
            (IP2ProxyDataset, IP2PROXY_IPV6_PATH, IP2PROXY_COLUMNS),
            (IP2LocationDataset, IP2LOCATION_IPV6_PATH, IP2LOCATION_COLUMNS),
        ]
        for dataset_class, relative_path, columns in optional_ipv6:
            if (data_dir / relative_path).exists():
                table = self.load_range_table(data_dir / relative_path, columns, AddressFamily.IPV6)
                datasets.append(dataset_class(table))

        return datasets
