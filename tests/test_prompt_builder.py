"""Tests for the system prompt."""

from datetime import (
    datetime,
    timedelta,
    timezone,
)

from auraspend.agent.prompt_builder import (
    build_system_prompt,
    current_time_context,
    render_tool_catalog,
)
from auraspend.tools import ToolRegistry


def test_catalog_lists_every_tool_in_order(registry: ToolRegistry) -> None:
    catalog = render_tool_catalog(registry)

    positions = [catalog.index(f"- {name}:") for name in registry.names()]
    assert positions == sorted(positions)
    assert '"required": true' in catalog


def test_prompt_contains_time_and_format_rules(registry: ToolRegistry) -> None:
    prompt = build_system_prompt(registry, "2024-03-15T09:30", "+02:00")

    assert "AuraSpend" in prompt
    assert "2024-03-15T09:30" in prompt and "+02:00" in prompt
    assert '"toolName"' in prompt
    assert "```json" in prompt
    assert "NEVER PROVIDE OR SUGGEST ANY EXTERNAL LINKS" in prompt
    assert "USER LANGUAGE PREFERENCE" not in prompt


def test_language_section_is_optional(registry: ToolRegistry) -> None:
    prompt = build_system_prompt(registry, "2024-03-15T09:30", "+02:00", user_language="Spanish")

    assert "USER LANGUAGE PREFERENCE" in prompt
    assert "(Spanish)" in prompt


def test_prompt_is_deterministic(registry: ToolRegistry) -> None:
    args = (registry, "2024-03-15T09:30", "+02:00", "French")

    assert build_system_prompt(*args) == build_system_prompt(*args)


def test_current_time_context_formats_offset() -> None:
    now = datetime(2024, 1, 2, 3, 4, tzinfo=timezone(timedelta(hours=-5, minutes=-30)))

    assert current_time_context(now) == ("2024-01-02T03:04", "-05:30")
    utc = datetime(2024, 1, 2, 3, 4, tzinfo=timezone.utc)
    assert current_time_context(utc) == ("2024-01-02T03:04", "+00:00")
