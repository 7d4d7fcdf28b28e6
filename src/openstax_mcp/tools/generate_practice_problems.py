"""Tool handler for generate_practice_problems.

One generation call per (textbook, module, difficulty). The model's reply is
stored verbatim: the prompt asks for a Problem/Solution layout but the reply
is not parsed or checked against it. ``count`` only shapes the prompt; it is
not part of the cache key, so it is left out of the stored payload too and a
cached reply may hold a different number of problems than a later call asks for.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from openstax_mcp.cache import cache_key
from openstax_mcp.content import cache_or_produce, get_module_content
from openstax_mcp.models.cache import CacheRegion
from openstax_mcp.models.tools import GeneratePracticeProblemsInput
from openstax_mcp.tools import validate_arguments

if TYPE_CHECKING:
    from openstax_mcp.state import AppState

PROMPT_CONTENT_CHARS = 3000

PROMPT_TEMPLATE = """\
Based on this educational content, generate {count} {difficulty} practice problems \
with detailed solutions.

Content Title: {title}
Content: {content}

Format each problem as:
Problem N:
[problem statement]

Solution N:
[detailed solution]"""


def build_prompt(title: str, content: str, difficulty: str, count: int) -> str:
    return PROMPT_TEMPLATE.format(
        count=count,
        difficulty=difficulty,
        title=title,
        content=content[:PROMPT_CONTENT_CHARS],
    )


async def handle(arguments: dict[str, Any], state: AppState) -> dict:
    """Handle a generate_practice_problems tool call."""
    log = structlog.get_logger().bind(tool="generate_practice_problems")
    log.info("handler_called")

    validated = validate_arguments(
        GeneratePracticeProblemsInput,
        arguments,
        suggestion="difficulty must be easy, medium or hard; count between 1 and 20.",
    )
    key = cache_key(
        "problems", validated.textbook_id, validated.module_id, validated.difficulty
    )

    async def produce() -> dict[str, Any]:
        module = await get_module_content(
            state, validated.textbook_id, validated.module_id, include_images=False
        )
        prompt = build_prompt(
            module["title"], module["content"], validated.difficulty, validated.count
        )
        problems = await state.models.generate(prompt)
        log.info("problems_generated", module_id=validated.module_id, length=len(problems))
        return {
            "textbook_id": validated.textbook_id,
            "module_id": validated.module_id,
            "title": module["title"],
            "difficulty": validated.difficulty,
            "problems": problems,
        }

    return await cache_or_produce(
        state,
        CacheRegion.PROBLEMS,
        key,
        state.settings.cache.generated_ttl_hours,
        produce,
    )
