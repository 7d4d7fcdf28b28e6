from __future__ import annotations

from openstax_mcp.models.cache import CacheEntry, CacheRegion
from openstax_mcp.models.search import VectorEntry, VectorMatch
from openstax_mcp.models.textbook import (
    ImageRef,
    ModuleContent,
    ModuleRef,
    Textbook,
    TextbookStructure,
)
from openstax_mcp.models.tools import (
    GenerateJupyterNotebookInput,
    GeneratePracticeProblemsInput,
    GetModuleContentInput,
    IndexTextbookInput,
    ListTextbooksInput,
    SemanticSearchInput,
    TextbookInput,
)

__all__ = [
    # textbook
    "Textbook",
    "TextbookStructure",
    "ModuleRef",
    "ModuleContent",
    "ImageRef",
    # cache
    "CacheEntry",
    "CacheRegion",
    # search
    "VectorEntry",
    "VectorMatch",
    # tools
    "ListTextbooksInput",
    "TextbookInput",
    "GetModuleContentInput",
    "SemanticSearchInput",
    "GeneratePracticeProblemsInput",
    "GenerateJupyterNotebookInput",
    "IndexTextbookInput",
]
