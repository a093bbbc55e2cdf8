"""
Theme Schema

A theme is a free-text label grouping agreements (e.g. "Labour Mobility").
Agreements reference a theme by name, not by id, so renaming a theme has to
rewrite every agreement that carries the old name.
"""

from pydantic import BaseModel, Field


class Theme(BaseModel):
    id: str = Field(
        ...,
        description="Backend-assigned identifier"
    )
    name: str = Field(
        ...,
        description="Display name, unique"
    )


class ThemeInput(BaseModel):
    """Body for creating or renaming a theme."""
    name: str = ""
