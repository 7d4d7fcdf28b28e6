from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, field_validator

Language = Literal["en", "es", "pl"]


class Textbook(BaseModel):
    """Single entry of the textbook listing, derived from a GitHub repository."""

    id: str  # Repository name, e.g. "osbooks-college-physics-bundle"
    name: str
    repo: str
    description: str | None = None
    language: Language = "en"
    updated: str | None = None
    stars: int = 0


class ModuleRef(BaseModel):
    id: str
    title: str = "Untitled"

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        if not v:
            raise ValueError("module id must not be empty")
        return v


class TextbookStructure(BaseModel):
    """Table of contents of one textbook, in collection document order."""

    textbook_id: str
    title: str
    modules: list[ModuleRef] = []
    metadata: dict[str, str] = {}


class ImageRef(BaseModel):
    name: str
    url: str | None = None


class ModuleContent(BaseModel):
    textbook_id: str
    module_id: str
    title: str
    content: str = ""
    raw_xml: str
    images: list[ImageRef] | None = None
