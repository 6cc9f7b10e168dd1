"""
Explorer backend implementations.

Available backends:
- HttpExplorerBackend: block explorer REST APIs (blockchain.info raw tx
  lookup, mempool.space broadcast by default)
"""

from btcsend.backends.base import ExplorerBackend
from btcsend.backends.http import HttpExplorerBackend

__all__ = [
    "ExplorerBackend",
    "HttpExplorerBackend",
]
