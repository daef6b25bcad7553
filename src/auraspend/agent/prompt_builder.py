"""
System prompt construction.

The prompt is rebuilt for every model request because it embeds the user's current local time.
Tool calls travel as plain text (fenced JSON blocks) rather than through a provider's native
tool-calling API, so the output contract below is what :mod:`auraspend.tools.tool_call_parser`
relies on.
"""

import json
from datetime import datetime
from typing import Tuple

from auraspend.tools import ToolRegistry

FENCE = "```"

_INTRO = """\
You are AuraSpend Assistant, a helpful AI assistant for the AuraSpend expense tracking app.

Your role is to help users manage their finances by providing information about their \
transactions, categories and budgets, and by assisting with common tasks like adding expenses, \
categorizing transactions and analyzing spending patterns.

**AVAILABLE TOOLS:**

You have access to the following tools. You must use these tools to perform actions or retrieve \
information:
"""

_RULES = f"""\
**IMPORTANT RULE: NEVER PROVIDE OR SUGGEST ANY EXTERNAL LINKS OR URLs.**
Always respond with information directly or via the tools available.

**CRITICAL: TOOL CALL FORMAT RULES**

You MUST follow these rules when calling tools:

1. ALWAYS wrap each tool call in a markdown code fence tagged "json" ({FENCE}json ... {FENCE})
2. Each fenced block contains EXACTLY ONE JSON object with the keys "explanation" (string), \
"toolName" (string) and "parameters" (object)
3. You can include MULTIPLE fenced blocks in a single response
4. DO NOT include any text before, between or after the blocks when making tool calls
5. When NOT calling a tool, just respond normally with your message and NO fenced JSON
6. NEVER use undefined tools or make up tool names - only use the tools listed above

**REQUIRED JSON FORMAT FOR TOOL CALLS:**

{FENCE}json
{{
  "explanation": "Brief explanation of what you're doing",
  "toolName": "exactToolName",
  "parameters": {{
    "param1": "value1"
  }}
}}
{FENCE}

**EFFICIENCY: SAVE THE USER'S API CALLS**

1. Prefer batch tools: when a tool accepts a list (for example several category names), make ONE \
call with the whole list instead of one call per item.
2. When the next call does not depend on the result of a previous one, put ALL the calls in the \
SAME response as multiple fenced blocks instead of waiting for a later turn.
3. Only split the work across responses when you really need to see a result first; after each \
result you may call more tools or give the final answer.
4. Use the most specific tool for the task (e.g. a date-range query instead of "recent" data).
"""


def render_tool_catalog(registry: ToolRegistry) -> str:
    """Render every tool in registry order with its JSON parameter schema."""
    entries = []
    for tool in registry.list():
        params = json.dumps(tool.parameter_schema(), indent=2, ensure_ascii=False)
        entries.append(f"- {tool.name}: {tool.description}\n  Parameters: {params}")
    return "\n\n".join(entries)


def time_note(current_local_time: str, timezone_offset: str) -> str:
    return (
        "\nUSER CURRENT LOCAL DATE/TIME\n"
        f"The user's current local time is: {current_local_time} "
        f"(timezone offset: {timezone_offset}).\n"
        "When dates/times are ambiguous or missing in the user's request, use this reference.\n"
    )


def language_note(user_language: str) -> str:
    return (
        "\nUSER LANGUAGE PREFERENCE\n"
        f"User's selected language: {user_language}\n"
        f"Respond to the user in their preferred language ({user_language}).\n"
    )


def build_system_prompt(
    registry: ToolRegistry,
    current_local_time: str,
    timezone_offset: str,
    user_language: str | None = None,
) -> str:
    """Return the complete system prompt.  Pure and deterministic for the same inputs."""
    parts = [
        _INTRO,
        render_tool_catalog(registry),
        "",
        _RULES,
        time_note(current_local_time, timezone_offset),
    ]
    if user_language:
        parts.append(language_note(user_language))
    return "\n".join(parts)


def current_time_context(now: datetime | None = None) -> Tuple[str, str]:
    """
    Return ``(local_time, utc_offset)`` as ``("YYYY-MM-DDTHH:MM", "+HH:MM")``.

    *now* defaults to the current local time; naive datetimes are taken as local time.
    """
    if now is None:
        now = datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()

    offset = now.utcoffset()
    minutes = int(offset.total_seconds() // 60) if offset is not None else 0
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return now.strftime("%Y-%m-%dT%H:%M"), f"{sign}{hours:02d}:{mins:02d}"
