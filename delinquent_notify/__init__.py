"""Delinquent member file ingestion and agency notification toolkit."""

from .mapping.row_mapper import map_row
from .services.aggregator import AgencyAggregator, aggregate
from .services.ingestion import ingest_file
from .services.statistics import calculate_statistics
from .tabular.reader import validate_headers

__all__ = [
    "AgencyAggregator",
    "aggregate",
    "calculate_statistics",
    "ingest_file",
    "map_row",
    "validate_headers",
]

__version__ = "0.1.0"
