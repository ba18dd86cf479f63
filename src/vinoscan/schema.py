"""Pydantic schemas for VinoScan catalog data."""

from typing import Any, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from vinoscan.constants import Defaults, WineType
from vinoscan.utils import new_entry_id, now_ms


class CustomField(BaseModel):
    """User-defined label/value pair attached to an entry."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Field label, not required to be unique")
    value: str = Field("", description="Field value")


class WineEntry(BaseModel):
    """A catalog record.

    Persisted with camelCase keys (``imageUrls``, ``binNumber`` ...), exposed in
    Python as snake_case attributes. Entries are immutable; edits produce a new
    entry with the same ``id`` and ``created_at``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_entry_id, description="Opaque unique identifier")
    image_urls: Tuple[str, ...] = Field(
        default=(), alias="imageUrls", description="Encoded images, index 0 is primary"
    )
    name: str = ""
    maker: str = ""
    year: str = Field("", description="Vintage as text, e.g. '2018' or 'N/V'")
    wine_type: WineType = Field(Defaults.MANUAL_TYPE, alias="type")
    price: str = Field("", description="Price as text, e.g. '$45.00'")
    description: str = ""
    bin_number: str = Field("", alias="binNumber")
    notes: str = ""
    custom_fields: Tuple[CustomField, ...] = Field(default=(), alias="customFields")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    deleted_at: Optional[int] = Field(None, alias="deletedAt")

    @property
    def is_trashed(self) -> bool:
        return self.deleted_at is not None

    @property
    def primary_image(self) -> Optional[str]:
        return self.image_urls[0] if self.image_urls else None

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON shape (``deletedAt`` omitted when unset)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    # Draft editing helpers. Each returns a new entry.

    def with_images_added(self, urls: Iterable[str]) -> "WineEntry":
        return self.model_copy(update={"image_urls": self.image_urls + tuple(urls)})

    def with_image_removed(self, index: int) -> "WineEntry":
        """Drop the image at ``index``; the remaining images keep their order."""
        images = tuple(url for i, url in enumerate(self.image_urls) if i != index)
        return self.model_copy(update={"image_urls": images})

    def with_custom_field(self, label: str, value: str = "") -> "WineEntry":
        """Append a custom field. An empty label is ignored."""
        if not label:
            return self
        field = CustomField(label=label, value=value)
        return self.model_copy(update={"custom_fields": self.custom_fields + (field,)})

    def without_custom_field(self, index: int) -> "WineEntry":
        fields = tuple(f for i, f in enumerate(self.custom_fields) if i != index)
        return self.model_copy(update={"custom_fields": fields})


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class AIWineResponse(BaseModel):
    """Wine attributes read from a label by the analysis provider.

    Transient: merged into a draft WineEntry, never persisted as-is.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Wine name")
    maker: str = Field(..., description="Maker / winery")
    year: str = Field(..., description="Vintage year or 'N/V'")
    wine_type: WineType = Field(..., alias="type")
    description: str = Field("", description="Brief tasting description")

    @classmethod
    def from_provider(cls, data: Dict[str, Any]) -> "AIWineResponse":
        """Build a response from a raw provider payload, filling safe placeholders."""
        return cls(
            name=_text(data.get("name")) or Defaults.AI_NAME,
            maker=_text(data.get("maker")) or Defaults.AI_MAKER,
            year=_text(data.get("year")) or Defaults.AI_YEAR,
            wine_type=WineType.coerce(_text(data.get("type")), Defaults.AI_TYPE),
            description=_text(data.get("description")),
        )

    def to_draft(self, image_urls: Iterable[str], **overrides) -> WineEntry:
        """Merge these attributes with images into a fresh draft entry."""
        return WineEntry(
            name=self.name,
            maker=self.maker,
            year=self.year,
            wine_type=self.wine_type,
            description=self.description,
            image_urls=tuple(image_urls),
            **overrides,
        )
