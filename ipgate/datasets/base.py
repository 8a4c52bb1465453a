"""
Base dataset interface for IP attribution sources.

This module defines the lookup capability every dataset exposes to the
resolver, and the two concrete shapes sources come in: range-keyed tables
loaded from delimited text, and trie databases read through an external
binary format reader.
"""

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from ..debug import debug_dataset_method
from ..validator import AddressFamily, NormalizedAddress
from .range_table import RangeTable

logger = logging.getLogger(__name__)

# output field -> (source column, converter)
FieldMap = Dict[str, Tuple[str, Callable[[Any], Any]]]


def as_text(value: Any) -> Optional[str]:
    """Strip a text value, mapping blanks to None."""
    text = str(value).strip()
    return text or None


def as_float(value: Any) -> float:
    """Parse a finite float; NaN and infinities raise ValueError."""
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number: {value!r}")
    return number


def as_int(value: Any) -> int:
    return int(str(value).strip())


def as_number(value: Any):
    """Parse a numeric column, keeping integral values as int."""
    number = as_float(value)
    return int(number) if number.is_integer() else number


class BaseDataset(ABC):
    """Base class for all attribution datasets."""

    def __init__(self, key: str, name: str,
                 families: Iterable[AddressFamily] = (AddressFamily.IPV4, AddressFamily.IPV6)):
        """
        Initialize the dataset.

        Args:
            key: Stable identifier used by the field precedence table
            name: Human-readable name reported as provenance
            families: Address families this dataset can answer for
        """
        self.key = key
        self.name = name
        self.families = tuple(families)

    @abstractmethod
    def lookup(self, address: NormalizedAddress) -> Optional[Dict[str, Any]]:
        """
        Look up an address in this dataset.

        Args:
            address: Normalized address

        Returns:
            Mapping of output field names to present values, or None when the
            dataset holds no record for the address. An empty mapping is still
            a match.
        """
        pass

    def supports(self, family: AddressFamily) -> bool:
        """Check whether this dataset answers for an address family."""
        return family in self.families

    def is_available(self) -> bool:
        """
        Check if the dataset has any data loaded.

        Returns:
            True if lookups can ever match, False otherwise
        """
        return True

    def describe(self) -> Dict[str, Any]:
        """Summary of this dataset for informational output."""
        return {
            'key': self.key,
            'name': self.name,
            'families': [str(family) for family in self.families],
            'available': self.is_available(),
        }

    def _handle_lookup_error(self, error: Exception, address: str) -> None:
        """
        Handle lookup errors consistently.

        Args:
            error: The exception that occurred
            address: The address being looked up
        """
        from ..security import security
        sanitized_error = security.sanitize_error_message(str(error), address)
        logger.warning(f"Error in {self.name} dataset for {address}: {sanitized_error}")


class RangeDataset(BaseDataset):
    """Dataset backed by a RangeTable of one address family."""

    def __init__(self, key: str, name: str, table: RangeTable, field_map: FieldMap):
        """
        Initialize the range dataset.

        Args:
            key: Stable identifier used by the field precedence table
            name: Human-readable name reported as provenance
            table: Loaded range table
            field_map: Output field -> (column, converter)
        """
        super().__init__(key, name, (table.family,))
        self.table = table
        self.field_map = field_map

    @debug_dataset_method
    def lookup(self, address: NormalizedAddress) -> Optional[Dict[str, Any]]:
        if address.family is not self.table.family:
            return None

        entry = self.table.lookup(address.ordinal)
        if entry is None:
            return None

        return self.extract_fields(entry.fields)

    def extract_fields(self, columns: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Convert raw column values into output fields.

        Columns that are absent, or whose value does not convert, are left out.
        """
        fields = {}
        for field_name, (column, converter) in self.field_map.items():
            raw = columns.get(column)
            if raw is None:
                continue
            try:
                value = converter(raw)
            except (ValueError, TypeError):
                continue
            if value is not None:
                fields[field_name] = value
        return fields

    def is_available(self) -> bool:
        return not self.table.is_empty()

    def describe(self) -> Dict[str, Any]:
        summary = super().describe()
        summary['entries'] = len(self.table)
        return summary


class TrieDataset(BaseDataset):
    """Dataset backed by an externally parsed prefix-trie database."""

    def __init__(self, key: str, name: str, reader: Any = None):
        """
        Initialize the trie dataset.

        Args:
            key: Stable identifier used by the field precedence table
            name: Human-readable name reported as provenance
            reader: Opened database reader exposing get(address), or None when
                the database could not be opened
        """
        super().__init__(key, name)
        self.reader = reader

    @abstractmethod
    def extract_fields(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Flatten a nested database record into output fields.

        Args:
            record: Record returned by the database reader

        Returns:
            Output field mapping with absent values left out
        """
        pass

    @debug_dataset_method
    def lookup(self, address: NormalizedAddress) -> Optional[Dict[str, Any]]:
        if self.reader is None:
            return None

        try:
            record = self.reader.get(address.address)
            if record is None:
                return None
            return self.extract_fields(record)
        except Exception as e:
            self._handle_lookup_error(e, address.address)
            return None

    def is_available(self) -> bool:
        return self.reader is not None

    def close(self) -> None:
        """Close the underlying database reader."""
        if self.reader is not None:
            self.reader.close()
            self.reader = None
