from __future__ import annotations

import json

import pytest

from app.models.schemas import SearchResult, StructuredAction, TextAction
from app.services.errors import ParseError
from app.services.normalizer import (
    is_placeholder_url,
    normalize_response,
    parse_model_json,
    resolve_attribution,
    strip_code_fences,
)


def _results() -> list[SearchResult]:
    return [
        SearchResult(
            url="https://www.reddit.com/r/Accounting/comments/a1/expense_reports",
            title="Expense reports are killing me",
            snippet="Every Friday I copy receipts...",
            source="reddit",
        ),
        SearchResult(
            url="https://x.com/someone/status/1",
            title="Why is expense logging still manual",
            snippet="I wish there was a tool",
            source="twitter",
        ),
        SearchResult(
            url="https://www.quora.com/How-do-I-automate-expenses",
            title="How do I automate expenses?",
            snippet="Looking for a tool",
            source="quora",
        ),
    ]


SOLVER_OUTPUT = {
    "title": "Manual Expense Logging",
    "domain": "Finance",
    "role": "Accountant",
    "overview": "Copying receipt totals into a spreadsheet.",
    "gap": "Receipts arrive in mixed formats.",
    "automation": "**Quick Win (No-Code):** Zapier",
    "action": {
        "diy": {
            "description": "Build a Make.com scenario",
            "resources": [
                {"type": "tool", "title": "Make.com", "url": "https://make.com", "cost": "$9/mo"}
            ],
        },
        "existing_solutions": [
            {"name": "Expensify", "url": "https://expensify.com", "cost": "$5/mo", "description": "Receipt capture"}
        ],
        "build_opportunity": {"viable": True, "reason": "SMBs underserved", "search_query": "receipt ocr"},
    },
    "sentiment": {"frustration_level": 8, "urgency_score": 7, "willingness_to_pay": 6},
    "source_url": "https://x.com/someone/status/1",
}


def test_strip_code_fences_handles_json_and_bare_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1]\n```\n') == "[1]"
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_fenced_and_unfenced_output_normalize_identically():
    raw = json.dumps(SOLVER_OUTPUT)
    fenced = f"```json\n{raw}\n```"

    assert normalize_response(fenced, _results()) == normalize_response(raw, _results())


def test_single_object_becomes_one_record():
    records = normalize_response(json.dumps(SOLVER_OUTPUT), _results())

    assert len(records) == 1
    assert records[0].title == "Manual Expense Logging"


def test_array_of_three_keeps_order():
    items = [{**SOLVER_OUTPUT, "title": f"Problem {i}", "action": "text plan"} for i in range(3)]

    records = normalize_response(json.dumps(items), _results())

    assert [r.title for r in records] == ["Problem 0", "Problem 1", "Problem 2"]


def test_under_count_builder_output_is_accepted():
    items = [
        {"title": "Invoice chasing", "domain": "Freelancing", "action": "Validate first"},
        {"title": "Timesheet merging", "domain": "Agencies", "action": "Build a sheet add-on"},
    ]

    records = normalize_response(json.dumps(items), _results())

    assert len(records) == 2


def test_invalid_json_raises_parse_error():
    with pytest.raises(ParseError) as exc_info:
        normalize_response("Sure! Here is the analysis: {title: oops", _results())

    assert exc_info.value.message == "Failed to parse AI response"
    assert exc_info.value.status_code == 500


@pytest.mark.parametrize("raw", ["", "```json\n```", "42", '"just text"', "[]", "[1, 2]"])
def test_unusable_output_raises_parse_error(raw):
    with pytest.raises(ParseError):
        parse_model_json(raw)


def test_non_object_array_entries_are_skipped():
    items = parse_model_json(json.dumps([{"title": "a"}, "stray", {"title": "b"}]))

    assert [i["title"] for i in items] == ["a", "b"]


def test_exact_url_match_wins_over_position():
    records = normalize_response(json.dumps(SOLVER_OUTPUT), _results())

    assert records[0].source_type == "twitter"
    assert records[0].source_url == "https://x.com/someone/status/1"
    assert "unmatched_source_url" not in records[0].quality_warnings


def test_missing_source_url_falls_back_to_position():
    items = [{"title": f"P{i}", "domain": "Ops"} for i in range(3)]

    records = normalize_response(json.dumps(items), _results())

    assert [r.source_type for r in records] == ["reddit", "twitter", "quora"]
    assert records[2].source_url == "https://www.quora.com/How-do-I-automate-expenses"


def test_position_beyond_results_uses_first_result():
    source_type, source_url, matched = resolve_attribution("", 7, _results())

    assert (source_type, matched) == ("reddit", False)
    assert source_url == _results()[0].url


def test_unmatched_url_is_kept_and_flagged():
    raw = {**SOLVER_OUTPUT, "source_url": "https://www.reddit.com/r/other/comments/zzz"}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert record.source_url == "https://www.reddit.com/r/other/comments/zzz"
    assert record.source_type == "reddit"
    assert "unmatched_source_url" in record.quality_warnings


def test_no_search_results_defaults_attribution():
    assert resolve_attribution("", 0, []) == ("reddit", "", False)


def test_missing_optional_fields_get_defaults():
    record = normalize_response(json.dumps({"title": "T", "domain": "D"}), _results())[0]

    assert record.role == "General"
    assert record.sentiment is None
    assert record.action is None
    assert record.overview == ""
    assert "missing_sentiment" in record.quality_warnings
    assert "missing_action" in record.quality_warnings


def test_empty_title_and_domain_are_kept_with_warnings():
    record = normalize_response(json.dumps({"overview": "something"}), _results())[0]

    assert record.title == ""
    assert record.domain == ""
    assert {"missing_title", "missing_domain"} <= set(record.quality_warnings)
    assert record.completeness == pytest.approx(0.14)


def test_string_action_becomes_text_variant():
    raw = {**SOLVER_OUTPUT, "action": "Day 1: list receipts\nDay 2: set up Zapier"}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, TextAction)
    assert record.action_value().startswith("Day 1")


def test_object_action_becomes_structured_variant():
    record = normalize_response(json.dumps(SOLVER_OUTPUT), _results())[0]

    assert isinstance(record.action, StructuredAction)
    plan = record.action.plan
    assert plan.diy.resources[0].title == "Make.com"
    assert plan.existing_solutions[0].name == "Expensify"
    assert plan.build_opportunity.viable is True
    assert record.completeness == 1.0
    assert record.quality_warnings == []


def test_structured_action_tolerates_nulls_and_numbers():
    raw = {
        **SOLVER_OUTPUT,
        "action": {
            "diy": {"description": None, "resources": None},
            "existing_solutions": [
                {"name": "Zapier", "url": "https://zapier.com", "cost": 20, "description": None}
            ],
        },
    }

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, StructuredAction)
    assert record.action.plan.diy.description == ""
    assert record.action.plan.diy.resources == []
    assert record.action.plan.existing_solutions[0].cost == "20"
    assert record.action.plan.existing_solutions[0].description == ""


def test_unrecognized_action_object_falls_back_to_text():
    raw = {**SOLVER_OUTPUT, "action": {"diy": "just do it yourself"}}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, TextAction)
    assert json.loads(record.action.text) == {"diy": "just do it yourself"}
    assert "unrecognized_action_shape" in record.quality_warnings


def test_placeholder_urls_are_flagged_not_rejected():
    raw = json.loads(json.dumps(SOLVER_OUTPUT))
    raw["action"]["diy"]["resources"].append(
        {"type": "template", "title": "Template", "url": "https://real-url.com"}
    )

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, StructuredAction)
    assert "placeholder_url" in record.quality_warnings


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://...", True),
        ("", True),
        ("make.com", True),
        ("https://www.example.com/tutorial", True),
        ("https://zapier.com/apps", False),
    ],
)
def test_is_placeholder_url(url, expected):
    assert is_placeholder_url(url) is expected


def test_sentiment_strings_are_coerced_and_clamped():
    raw = {
        **SOLVER_OUTPUT,
        "sentiment": {"frustration_level": "9", "urgency_score": 12, "willingness_to_pay": 0.4},
    }

    record = normalize_response(json.dumps(raw), _results())[0]

    assert record.sentiment.model_dump() == {
        "frustration_level": 9,
        "urgency_score": 10,
        "willingness_to_pay": 1,
    }
    assert "sentiment_out_of_range" in record.quality_warnings


def test_incomplete_sentiment_is_dropped():
    raw = {**SOLVER_OUTPUT, "sentiment": {"frustration_level": 8}}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert record.sentiment is None
    assert "invalid_sentiment" in record.quality_warnings


def test_list_valued_text_fields_are_joined():
    raw = {**SOLVER_OUTPUT, "automation": ["Quick Win: Zapier", "Best: Expensify"]}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert record.automation == "Quick Win: Zapier\nBest: Expensify"
    assert "coerced_automation" in record.quality_warnings


def test_normalizing_normalized_output_is_stable():
    messy = [
        SOLVER_OUTPUT,
        {
            "title": "Timesheets",
            "automation": ["a", "b"],
            "action": {"diy": "not a plan"},
            "sentiment": {"frustration_level": 15, "urgency_score": "3", "willingness_to_pay": 2},
        },
        {"domain": "Ops", "sentiment": "very high", "source_url": "https://nowhere.test/x"},
    ]
    first = normalize_response("```json\n" + json.dumps(messy) + "\n```", _results())

    second = normalize_response(json.dumps([r.to_payload() for r in first]), _results())

    assert second == first


def test_day_keyed_action_object_keeps_its_content_as_text():
    raw = {
        "title": "T",
        "domain": "D",
        "action": {"day_1": "Set up Zapier", "day_2": "Connect Sheets"},
    }

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, TextAction)
    assert json.loads(record.action.text) == raw["action"]
    assert "unrecognized_action_shape" in record.quality_warnings


def test_plan_with_extra_top_level_keys_is_kept_as_text():
    raw = json.loads(json.dumps(SOLVER_OUTPUT))
    raw["action"]["summary"] = "Start with Zapier"

    record = normalize_response(json.dumps(raw), _results())[0]

    assert isinstance(record.action, TextAction)
    assert "Start with Zapier" in record.action.text
    assert "unrecognized_action_shape" in record.quality_warnings


def test_empty_action_object_counts_as_missing():
    raw = {**SOLVER_OUTPUT, "action": {}}

    record = normalize_response(json.dumps(raw), _results())[0]

    assert record.action is None
    assert "missing_action" in record.quality_warnings


def test_huge_sentiment_integer_is_flagged_not_fatal():
    huge = "9" * 400
    raw_text = (
        '{"title": "T", "domain": "D", "sentiment": '
        f'{{"frustration_level": {huge}, "urgency_score": 5, "willingness_to_pay": 5}}}}'
    )

    record = normalize_response(raw_text, _results())[0]

    assert record.sentiment is None
    assert "invalid_sentiment" in record.quality_warnings
