"""Tool handler for generate_jupyter_notebook.

Purely templated: the same module always yields the same four-cell nbformat
4.5 document, differing only in the embedded title and excerpt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.cache import cache_key
from openstax_mcp.content import cache_or_produce, get_module_content
from openstax_mcp.models.cache import CacheRegion
from openstax_mcp.models.tools import GenerateJupyterNotebookInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState

SUMMARY_CHARS = 500

_IMPORT_SOURCE = [
    "# Import libraries\n",
    "import numpy as np\n",
    "import matplotlib.pyplot as plt\n",
    "import pandas as pd\n",
]


def _markdown_cell(source: list[str]) -> dict[str, Any]:
    return {"cell_type": "markdown", "metadata": {}, "source": source}


def _code_cell(source: list[str]) -> dict[str, Any]:
    return {
        "cell_type": "code",
        "execution_count": None,
        "metadata": {},
        "outputs": [],
        "source": source,
    }


def build_notebook(
    title: str,
    module_id: str,
    content: str,
    *,
    include_solutions: bool = True,
) -> dict[str, Any]:
    """Assemble the notebook: title, imports, content summary, exercise placeholder."""
    exercise = [
        "# Example: Basic calculations\n",
        f"# Add worked examples based on the '{title}' module here\n",
    ]
    if include_solutions:
        exercise.append("# Solution: write your solution below and compare with the text\n")

    return {
        "cells": [
            _markdown_cell(
                [
                    f"# {title}\n\n",
                    "Generated from OpenStax MCP Server\n",
                    f"Module: {module_id}\n",
                ]
            ),
            _code_cell(list(_IMPORT_SOURCE)),
            _markdown_cell(["## Content Summary\n\n", f"{content[:SUMMARY_CHARS]}...\n"]),
            _code_cell(exercise),
        ],
        "metadata": {
            "kernelspec": {
                "display_name": "Python 3",
                "language": "python",
                "name": "python3",
            },
            "language_info": {"name": "python", "version": "3.12.0"},
        },
        "nbformat": 4,
        "nbformat_minor": 5,
    }


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a generate_jupyter_notebook tool call."""
    log = structlog.get_logger().bind(tool="generate_jupyter_notebook")
    log.info("handler_called")

    validated = validate_arguments(
        GenerateJupyterNotebookInput,
        arguments,
        suggestion="Provide textbook_id and module_id.",
    )
    key = cache_key(
        "notebook",
        validated.textbook_id,
        validated.module_id,
        "solutions" if validated.include_solutions else "nosolutions",
    )

    async def produce() -> dict[str, Any]:
        module = await get_module_content(
            state, validated.textbook_id, validated.module_id, include_images=False
        )
        notebook = build_notebook(
            module["title"],
            validated.module_id,
            module["content"],
            include_solutions=validated.include_solutions,
        )
        return {
            "notebook": notebook,
            "textbook_id": validated.textbook_id,
            "module_id": validated.module_id,
        }

    return await cache_or_produce(
        state,
        CacheRegion.NOTEBOOKS,
        key,
        state.settings.cache.generated_ttl_hours,
        produce,
    )
