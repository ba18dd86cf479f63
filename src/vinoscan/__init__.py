"""VinoScan - a personal wine cellar inventory with label scanning."""

from vinoscan.catalog import CatalogStore
from vinoscan.constants import SortKey, SortOrder, WineType
from vinoscan.query import QueryState, query_entries
from vinoscan.schema import AIWineResponse, CustomField, WineEntry

__version__ = "0.1.0"

__all__ = [
    'CatalogStore',
    'QueryState',
    'query_entries',
    'WineEntry',
    'CustomField',
    'AIWineResponse',
    'WineType',
    'SortKey',
    'SortOrder',
    '__version__',
]
