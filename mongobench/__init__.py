"""
MongoDB load generators.

This package provides a multi-threaded benchmark harness that runs a named query
from many workers and reports per-worker timing averages (``mongobench``), and a
simple read/write loop over a dummy document at random intervals (``mongoload``).
"""

__version__ = "0.1.0"

from .main import main

__all__ = ["main", "__version__"]
