"""
Attribution datasets.

This package contains the range-table and trie-database sources the resolver
consults, together with the loader that builds them from files on disk.
"""
