"""Schemas for listing data fields and editor responses."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class WidgetType(str, Enum):
    """Widget tags with a built-in renderer."""

    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    MULTISELECT = "multiselect"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    FILE = "file"
    AUTHOR = "author"
    HIDDEN = "hidden"
    INFO = "info"


class FieldDescriptor(BaseModel):
    """
    One editable listing field.

    ``value`` of None means "not set" and lets widgets fall back to the
    stored metadata. ``type`` may name a widget registered by an extension.
    """

    model_config = ConfigDict(extra="allow")

    key: str = Field(description="Metadata key the field reads and writes")
    label: str = ""
    placeholder: str = ""
    description: str = ""
    type: str = Field(default=WidgetType.TEXT.value, description="Widget tag")
    priority: Optional[int] = Field(
        default=None, description="Display order, lower first; unset sorts last"
    )
    value: Any = None
    classes: list[str] = Field(default_factory=list)
    options: dict[str, str] = Field(default_factory=dict)
    multiple: bool = False
    name: Optional[str] = Field(default=None, description="Input name override")
    information: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def validate_type(cls, v: Any) -> str:
        """Accept enum members and fall back to text for empty tags."""
        if isinstance(v, WidgetType):
            return v.value
        return str(v) if v else WidgetType.TEXT.value

    @field_validator("classes", mode="before")
    @classmethod
    def validate_classes(cls, v: Any) -> list[str]:
        """Accept a single class string."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return list(v)

    @field_validator("options", mode="before")
    @classmethod
    def validate_options(cls, v: Any) -> dict[str, str]:
        """Option keys are compared as strings."""
        if not v:
            return {}
        return {str(k): str(label) for k, label in dict(v).items()}

    @property
    def input_name(self) -> str:
        return self.name or self.key


class MetaBox(BaseModel):
    """Editor box shown on the listing edit screen."""

    id: str
    title: str
    context: str = "normal"
    priority: str = "default"


class SaveResponse(BaseModel):
    """Outcome of a listing data save."""

    listing_id: int
    saved: bool
    status: Optional[str] = None
