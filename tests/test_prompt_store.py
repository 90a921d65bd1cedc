from __future__ import annotations

import pytest

from app.services.prompt_store import build_prompts, render_prompt, system_prompt_key


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt(
        "analysis.user_prompt",
        query="expense reports",
        context="[REDDIT 1]\nThread",
    )
    assert prompt.startswith('Analyze: "expense reports"')
    assert "[REDDIT 1]\nThread" in prompt
    assert prompt.endswith("Respond with valid JSON only.")


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_reports_missing_values():
    with pytest.raises(KeyError, match="query"):
        render_prompt("analysis.user_prompt", context="c")


def test_system_prompt_key_by_mode():
    assert system_prompt_key("solver") == "analysis.solver_structured_system"
    assert system_prompt_key("solver", structured_action=False) == "analysis.solver_text_system"
    assert system_prompt_key("builder") == "analysis.builder_system"
    assert system_prompt_key("builder", structured_action=False) == "analysis.builder_system"


def test_solver_prompt_requires_action_object_and_keeps_prices():
    prompts = build_prompts("solver", "expense reports", "ctx")

    assert '"action" MUST be a JSON object' in prompts.system
    assert "$9/mo" in prompts.system
    assert "Quick Win" in prompts.system
    assert '"source_url"' in prompts.system


def test_text_solver_prompt_asks_for_day_plan():
    prompts = build_prompts("solver", "q", "ctx", structured_action=False)

    assert "day-by-day" in prompts.system
    assert '"action" MUST be a JSON object' not in prompts.system


def test_builder_prompt_asks_for_three_problems():
    prompts = build_prompts("builder", "invoicing", "ctx")

    assert "exactly 3" in prompts.system
    assert "ARRAY" in prompts.system
    assert 'Analyze: "invoicing"' in prompts.user


def test_query_with_dollar_sign_is_not_treated_as_placeholder():
    prompts = build_prompts("solver", "save $500 a month on $tools", "ctx")

    assert "save $500 a month on $tools" in prompts.user
