"""
ipgate - multi-source IP address attribution.

This package answers "what do we know about this IP address?" by consulting
several locally stored geolocation, ASN and proxy datasets and merging their
partial answers into one attributed record.
"""

__version__ = "3.0.0"
__author__ = "ipgate"
__license__ = "Apache License 2.0"
