"""
VinoScan Constants and Enums

Closed value sets, CSV column aliases and user-facing strings shared by the
catalog, the CSV codec and the label analyzer.
"""

from enum import Enum
from typing import Dict, Tuple


# =======================
# WINE ATTRIBUTE ENUMS
# =======================

class WineType(str, Enum):
    """Wine categories a catalog entry can belong to."""
    RED = "Red"
    WHITE = "White"
    ROSE = "Rosé"
    CHAMPAGNE = "Champagne/Sparkling"
    OTHER = "Other"

    @classmethod
    def values(cls) -> Tuple[str, ...]:
        """Return the exact string values of the closed set."""
        return tuple(member.value for member in cls)

    @classmethod
    def coerce(cls, raw: object, default: "WineType") -> "WineType":
        """Return the member whose value equals ``raw`` exactly, else ``default``."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str) and raw in cls.values():
            return cls(raw)
        return default


class SortKey(str, Enum):
    """Fields the catalog view can be ordered by."""
    NAME = "name"
    MAKER = "maker"
    YEAR = "year"
    PRICE = "price"
    CREATED_AT = "createdAt"


class SortOrder(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


# =======================
# CSV COLUMN CONSTANTS
# =======================

class ColumnNames:
    """CSV header names and the aliases accepted on import."""

    EXPORT_HEADERS = ("Name", "Maker", "Year", "Type", "Price", "Bin", "Notes")

    # Lower-cased header aliases, first match wins
    ALIASES: Dict[str, Tuple[str, ...]] = {
        "name": ("name", "wine", "wine name"),
        "maker": ("maker", "winery", "producer"),
        "year": ("year", "vintage"),
        "type": ("type", "category"),
        "price": ("price", "cost", "value"),
        "bin_number": ("bin", "bin number", "location"),
        "notes": ("notes", "personal notes", "comment"),
    }

    @classmethod
    def import_fields(cls) -> list:
        """Get the entry fields resolved from an imported file."""
        return list(cls.ALIASES)


# =======================
# DEFAULT VALUES
# =======================

class Defaults:
    """Placeholder values filled in when a source omits a field."""

    IMPORTED_NAME = "Imported Wine"
    IMPORTED_MAKER = "Unknown"
    IMPORTED_TYPE = WineType.RED

    AI_NAME = "Unknown Wine"
    AI_MAKER = "Unknown Maker"
    AI_YEAR = "N/V"
    AI_TYPE = WineType.OTHER

    MANUAL_TYPE = WineType.RED
