"""
Component props — per-type schemas, required defaults and cleaning.

Props arrive from the editor as open JSON records.  Before a record is
written into a generated data module it is:

1. cleaned of flat dotted keys that shadow a nested object
   (``"images.main"`` next to ``"images": {"main": ...}``),
2. completed with the placeholders some components cannot render
   without,
3. validated against the schema registered for its ``propsTypeName``.

Schemas check the fields the components actually read and let every
other key through unchanged.  Validation never rewrites the record:
the generated code carries the editor's values verbatim.
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class PropsValidationError(ValueError):
    """Raised when a component's props do not match its schema."""

    def __init__(self, component_type: str, props_type_name: str, detail: str) -> None:
        self.component_type = component_type
        self.props_type_name = props_type_name
        self.detail = detail
        super().__init__(f"{component_type} ({props_type_name}): {detail}")


# ── Shared shapes ───────────────────────────────────────────────


class _Open(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ImageProp(_Open):
    src: str
    alt: str = ""
    styles: str | None = None
    object_cover: bool | None = Field(default=None, alias="objectCover")


class TitleDescription(_Open):
    title: str = ""
    description: str = ""


class CarouselItem(_Open):
    title: str | None = None
    description: str | None = None
    button_text: str | None = Field(default=None, alias="buttonText")
    extra_info: str | None = Field(default=None, alias="extraInfo")
    image: ImageProp | None = None


class BaseComponentProps(_Open):
    """Fields every design component may receive."""

    title: str | None = None
    sub_title: str | None = Field(default=None, alias="subTitle")
    description: str | None = None
    button_text: str | None = Field(default=None, alias="buttonText")
    text_color: str | None = Field(default=None, alias="textColor")
    base_bg_color: str | None = Field(default=None, alias="baseBgColor")
    main_color: str | None = Field(default=None, alias="mainColor")
    bg_layout: dict[str, Any] | None = Field(default=None, alias="bgLayout")
    images: dict[str, ImageProp | str] | None = None
    items: list[CarouselItem] | None = None
    text_array: list[TitleDescription] | None = Field(default=None, alias="textArray")


# ── Component-specific schemas ──────────────────────────────────


class ImageTextBoxProps(BaseComponentProps):
    reverse: bool | None = None
    object_contain: bool | None = Field(default=None, alias="objectContain")


class _ProfileImages(_Open):
    profile: ImageProp


class ProfileCredentialsProps(BaseComponentProps):
    images: _ProfileImages  # type: ignore[assignment]
    text_array: list[TitleDescription] = Field(alias="textArray")  # type: ignore[assignment]


class _StepsProps(BaseComponentProps):
    text_array: list[TitleDescription] = Field(alias="textArray")  # type: ignore[assignment]


class ProcessStepsProps(_StepsProps):
    pass


class UniqueValuePropositionProps(_StepsProps):
    pass


class MarketingShowcaseProps(_StepsProps):
    pass


class CarouselProps(BaseComponentProps):
    items: list[CarouselItem] = Field(default_factory=list)  # type: ignore[assignment]


class TestimonialEntry(_Open):
    name: str = ""
    role: str = ""
    quote: str = ""
    src: str | None = None
    alt: str | None = None


class TestimonialsProps(BaseComponentProps):
    testimonials: list[TestimonialEntry] | None = None


# propsTypeName → schema.  Anything not listed validates as the base shape.
PROPS_SCHEMAS: dict[str, type[BaseComponentProps]] = {
    "ImageTextBoxProps": ImageTextBoxProps,
    "ProfileCredentialsProps": ProfileCredentialsProps,
    "ProcessStepsProps": ProcessStepsProps,
    "UniqueValuePropositionProps": UniqueValuePropositionProps,
    "MarketingShowcaseProps": MarketingShowcaseProps,
    "CarouselProps": CarouselProps,
    "TestimonialsProps": TestimonialsProps,
}


def schema_for(props_type_name: str) -> type[BaseComponentProps]:
    return PROPS_SCHEMAS.get(props_type_name, BaseComponentProps)


def validate_props(
    component_type: str,
    props_type_name: str,
    props: dict[str, Any],
) -> dict[str, Any]:
    """Check ``props`` against its schema and return it unchanged.

    Raises:
        PropsValidationError: On the first schema violation.
    """
    try:
        schema_for(props_type_name).model_validate(props)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first["loc"]) or "<root>"
        raise PropsValidationError(
            component_type, props_type_name, f"{loc}: {first['msg']}"
        ) from e
    return props


# ── Required defaults ───────────────────────────────────────────

_PLACEHOLDER_IMAGE = "/placeholder.webp"
_EMPTY_TEXT_ARRAY = [{"title": "", "description": ""}]

REQUIRED_PROPS: dict[str, dict[str, Any]] = {
    "imageTextBox": {
        "images": {"main": {"src": _PLACEHOLDER_IMAGE, "alt": "Image"}},
        "buttonText": "",
    },
    "profileCredentials": {
        "images": {"profile": {"src": _PLACEHOLDER_IMAGE, "alt": "Profile"}},
        "textArray": _EMPTY_TEXT_ARRAY,
    },
    "processSteps": {
        "textArray": _EMPTY_TEXT_ARRAY,
    },
    "valueProposition": {
        "textArray": _EMPTY_TEXT_ARRAY,
        "buttonText": "",
    },
    "marketingShowcase": {
        "textArray": _EMPTY_TEXT_ARRAY,
        "buttonText": "",
    },
}


def _merge_missing(target: dict[str, Any], defaults: dict[str, Any]) -> None:
    for key, value in defaults.items():
        if key not in target:
            target[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(target[key], dict):
            _merge_missing(target[key], value)


def apply_required_defaults(component_type: str, props: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``props`` with missing required keys filled in.

    Existing values always win; only absent keys (at any depth of a
    nested mapping) are added.
    """
    defaults = REQUIRED_PROPS.get(component_type)
    if not defaults:
        return props
    merged = copy.deepcopy(props)
    _merge_missing(merged, defaults)
    return merged


# ── Cleaning ────────────────────────────────────────────────────


def clean_component_props(props: dict[str, Any]) -> dict[str, Any]:
    """Drop flat dotted keys that duplicate a nested object's member.

    ``{"images.main": ..., "images": {"main": ...}}`` keeps only the
    nested form.  A dotted key whose nested counterpart is absent is
    kept.  Key order is preserved, and cleaning is idempotent.
    """
    cleaned: dict[str, Any] = {}
    for key, value in props.items():
        if "." in key:
            head, _, rest = key.partition(".")
            nested = props.get(head)
            if isinstance(nested, dict) and rest.split(".", 1)[0] in nested:
                continue
        cleaned[key] = value
    return cleaned
