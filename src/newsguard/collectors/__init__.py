"""Collection operation built from upstream news sources"""

from .aggregator import SourceAggregator
from .base import BaseSource

__all__ = ["BaseSource", "SourceAggregator"]
