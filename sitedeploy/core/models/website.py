"""
Website document models — the editor's ``websiteData`` JSON.

The editor owns this document; the deploy pipeline only reads it.
Field names keep the document's camelCase spelling as aliases so a
payload round-trips without renaming, and unknown keys are preserved.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator


class WebsiteDataError(ValueError):
    """Raised when a websiteData payload cannot be parsed."""


class SEOMetadata(BaseModel):
    """Per-page SEO fields rendered into the route's ``metadata`` export."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    title: str = ""
    description: str = ""
    keywords: str | list[str] | None = None
    open_graph: dict[str, Any] | None = Field(default=None, alias="openGraph")


class ComponentInstance(BaseModel):
    """One placed component on a page."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | int = ""
    type: str
    props: dict[str, Any] = Field(default_factory=dict)
    order: int | float = 0

    @field_validator("props", mode="before")
    @classmethod
    def _null_props(cls, value: Any) -> Any:
        return {} if value is None else value


class WebsitePage(BaseModel):
    """A page: slug, display name and its component instances."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    slug: str = ""
    page_name: str = Field(default="", alias="pageName")
    components: list[ComponentInstance] = Field(default_factory=list)
    seo: SEOMetadata | None = None

    @property
    def display_name(self) -> str:
        return self.page_name or self.slug

    def sorted_components(self) -> list[ComponentInstance]:
        """Components in render order.

        ``order`` decides the sequence; ``sorted`` is stable, so equal
        orders keep their list position.
        """
        return sorted(self.components, key=lambda c: c.order)


class WebsiteMaster(BaseModel):
    """Root document: every page of the site, keyed by slug.

    Mapping insertion order is the display order.  A list of pages is
    accepted too and keyed by each page's ``slug``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    pages: dict[str, WebsitePage] = Field(default_factory=dict)
    current_version_number: int | None = Field(default=0, alias="currentVersionNumber")
    versions: list[Any] = Field(default_factory=list)
    updated_at: str | int | float | None = Field(default=None, alias="updatedAt")
    seo_metadata: dict[str, SEOMetadata] = Field(default_factory=dict, alias="seoMetadata")

    @model_validator(mode="before")
    @classmethod
    def _pages_as_mapping(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("pages"), list):
            keyed: dict[str, Any] = {}
            for i, page in enumerate(data["pages"]):
                slug = page.get("slug") if isinstance(page, dict) else None
                keyed[slug or f"page-{i + 1}"] = page
            data = {**data, "pages": keyed}
        return data

    @model_validator(mode="after")
    def _fill_slugs(self) -> WebsiteMaster:
        for key, page in self.pages.items():
            if not page.slug:
                page.slug = key
        return self

    def used_types(self) -> list[str]:
        """Every component type referenced, de-duplicated, first-seen order."""
        seen: dict[str, None] = {}
        for page in self.pages.values():
            for comp in page.components:
                seen.setdefault(comp.type, None)
        return list(seen)

    def component_count(self) -> int:
        return sum(len(p.components) for p in self.pages.values())


def parse_website_data(payload: Any) -> WebsiteMaster:
    """Validate a raw JSON payload into a :class:`WebsiteMaster`.

    Raises:
        WebsiteDataError: If the payload is not a mapping or fails validation.
    """
    if not isinstance(payload, dict):
        raise WebsiteDataError(
            f"websiteData must be a JSON object, got {type(payload).__name__}"
        )
    try:
        return WebsiteMaster.model_validate(payload)
    except ValidationError as e:
        raise WebsiteDataError(f"Invalid websiteData: {e}") from e
