"""Argument contracts for each tool.

Every handler validates its raw ``arguments`` object against one of these
models before doing any I/O.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from openstax_mcp.models.textbook import Language

# Ids end up in upstream URL paths, so only path-safe characters are accepted.
_REPO_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._-]*$"
_MODULE_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"


class _ToolInput(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ListTextbooksInput(_ToolInput):
    subject: str | None = Field(default=None, max_length=200)
    language: Language | None = None


class TextbookInput(_ToolInput):
    textbook_id: str = Field(pattern=_REPO_ID_PATTERN, max_length=200)


class ModuleInput(TextbookInput):
    module_id: str = Field(pattern=_MODULE_ID_PATTERN, max_length=200)


class GetModuleContentInput(ModuleInput):
    include_images: bool = True


class SemanticSearchInput(_ToolInput):
    query: str = Field(min_length=1, max_length=2000)
    textbook_id: str | None = Field(default=None, pattern=_REPO_ID_PATTERN, max_length=200)
    limit: int | None = Field(default=None, ge=1, le=100)


class GeneratePracticeProblemsInput(ModuleInput):
    difficulty: Literal["easy", "medium", "hard"] = "medium"
    count: int = Field(default=5, ge=1, le=20)


class GenerateJupyterNotebookInput(ModuleInput):
    include_solutions: bool = True


class IndexTextbookInput(TextbookInput):
    max_modules: int = Field(default=20, ge=1, le=500)
