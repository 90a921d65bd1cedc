"""Turn raw model output into analysis records ready to be stored.

The model is asked for JSON but answers vary between releases: fenced or
bare, one object or an array, ``action`` as prose or as a structured plan,
sentiment as ints or strings. Everything here is a pure transform over the
text and the search results that were shown to the model.

Records are never rejected for being incomplete. Anything suspicious is
written to ``quality_warnings`` and reflected in ``completeness`` so the
display layer can decide how much to trust it.
"""
from __future__ import annotations

import json
import math
import re
from typing import Any
from urllib.parse import urlparse

from pydantic import ValidationError

from app.models.schemas import (
    ActionPlan,
    NormalizedAnalysis,
    SearchResult,
    SentimentScores,
    StructuredAction,
    TextAction,
)
from app.services.errors import ParseError
from app.services.logger import logger

CODE_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)

DEFAULT_ROLE = "General"
DEFAULT_SOURCE_TYPE = "reddit"
TEXT_FIELDS = ("title", "domain", "role", "overview", "gap", "automation")
SENTIMENT_KEYS = ("frustration_level", "urgency_score", "willingness_to_pay")
COMPLETENESS_FIELDS = ("title", "domain", "overview", "gap", "automation", "action", "sentiment")
PLAN_KEYS = {"diy", "existing_solutions", "build_opportunity"}

# Hosts lifted from the prompt's worked example rather than real resources.
PLACEHOLDER_HOSTS = {
    "example.com",
    "example.org",
    "real-url.com",
    "actualtool.com",
}
PLACEHOLDER_URLS = {"https://youtube.com/specific-video"}


def strip_code_fences(raw_text: str) -> str:
    return CODE_FENCE_PATTERN.sub("", raw_text or "").strip()


def parse_model_json(raw_text: str) -> list[dict[str, Any]]:
    """Parse model text into a list of candidate records.

    A single object becomes a one-element list. Array order is kept and no
    particular length is required.
    """
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        raise ParseError(detail="model returned an empty response")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(detail=f"invalid JSON from model: {e}") from e

    if isinstance(parsed, dict):
        return [parsed]
    if not isinstance(parsed, list):
        raise ParseError(detail=f"expected object or array, got {type(parsed).__name__}")

    items: list[dict[str, Any]] = []
    for index, item in enumerate(parsed):
        if isinstance(item, dict):
            items.append(item)
        else:
            logger.warning(f"Skipping non-object entry {index} in model output ({type(item).__name__})")
    if not items:
        raise ParseError(detail="model returned no analysis objects")
    return items


def is_placeholder_url(url: str) -> bool:
    value = (url or "").strip()
    if not value or "..." in value or value in PLACEHOLDER_URLS:
        return True
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return True
    host = parsed.netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return host in PLACEHOLDER_HOSTS


def resolve_attribution(
    claimed_url: str, index: int, search_results: list[SearchResult]
) -> tuple[str, str, bool]:
    """Return ``(source_type, source_url, matched)`` for the record at ``index``.

    An exact URL match wins, then the result at the same position, then the
    first result. A URL the model supplied is kept even when it matches nothing.
    """
    if claimed_url:
        for result in search_results:
            if result.url == claimed_url:
                return result.source, claimed_url, True

    if index < len(search_results):
        fallback: SearchResult | None = search_results[index]
    elif search_results:
        fallback = search_results[0]
    else:
        fallback = None

    source_type = fallback.source if fallback else DEFAULT_SOURCE_TYPE
    source_url = claimed_url or (fallback.url if fallback else "")
    return source_type, source_url, False


def _coerce_text(value: Any, field: str, warnings: list[str]) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    warnings.append(f"coerced_{field}")
    if isinstance(value, list):
        return "\n".join(
            item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
            for item in value
        )
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def normalize_action(value: Any, warnings: list[str]) -> TextAction | StructuredAction | None:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return TextAction(text=value)
    if isinstance(value, dict):
        if not value:
            return None
        if not PLAN_KEYS & value.keys():
            warnings.append("unrecognized_action_shape")
            return TextAction(text=json.dumps(value, ensure_ascii=False))
        try:
            plan = ActionPlan.model_validate(value)
        except ValidationError:
            warnings.append("unrecognized_action_shape")
            return TextAction(text=json.dumps(value, ensure_ascii=False))
        if any(is_placeholder_url(url) for url in plan.urls()):
            warnings.append("placeholder_url")
        return StructuredAction(plan=plan)
    return TextAction(text=_coerce_text(value, "action", warnings))


def _score(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))


def normalize_sentiment(value: Any, warnings: list[str]) -> SentimentScores | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        warnings.append("invalid_sentiment")
        return None

    scores: dict[str, int] = {}
    out_of_range = False
    for key in SENTIMENT_KEYS:
        score = _score(value.get(key))
        if score is None:
            warnings.append("invalid_sentiment")
            return None
        clamped = min(max(score, 1), 10)
        out_of_range = out_of_range or clamped != score
        scores[key] = clamped
    if out_of_range:
        warnings.append("sentiment_out_of_range")
    return SentimentScores(**scores)


def _completeness(record: dict[str, Any]) -> float:
    present = sum(1 for field in COMPLETENESS_FIELDS if record.get(field) not in (None, ""))
    return round(present / len(COMPLETENESS_FIELDS), 2)


def normalize_record(
    raw: dict[str, Any], index: int, search_results: list[SearchResult]
) -> NormalizedAnalysis:
    warnings: list[str] = []
    fields = {name: _coerce_text(raw.get(name), name, warnings) for name in TEXT_FIELDS}
    fields["role"] = fields["role"].strip() or DEFAULT_ROLE

    action = normalize_action(raw.get("action"), warnings)
    sentiment = normalize_sentiment(raw.get("sentiment"), warnings)

    claimed_url = _coerce_text(raw.get("source_url"), "source_url", warnings).strip()
    source_type, source_url, matched = resolve_attribution(claimed_url, index, search_results)

    if not fields["title"].strip():
        warnings.append("missing_title")
    if not fields["domain"].strip():
        warnings.append("missing_domain")
    if action is None:
        warnings.append("missing_action")
    if sentiment is None:
        warnings.append("missing_sentiment")
    if claimed_url and not matched:
        warnings.append("unmatched_source_url")

    # Warnings already attached to re-fed records are kept ahead of new ones.
    carried = raw.get("quality_warnings")
    carried = [w for w in carried if isinstance(w, str)] if isinstance(carried, list) else []
    quality_warnings = list(dict.fromkeys(carried + warnings))

    return NormalizedAnalysis(
        **fields,
        action=action,
        sentiment=sentiment,
        source_type=source_type,
        source_url=source_url,
        quality_warnings=quality_warnings,
        completeness=_completeness({**fields, "action": action, "sentiment": sentiment}),
    )


def normalize_response(
    raw_text: str, search_results: list[SearchResult]
) -> list[NormalizedAnalysis]:
    """Parse model text and normalize every record it contains.

    Raises ``ParseError`` when the text is not usable JSON.
    """
    records = [
        normalize_record(raw, index, search_results)
        for index, raw in enumerate(parse_model_json(raw_text))
    ]
    incomplete = sum(1 for r in records if r.quality_warnings)
    if incomplete:
        logger.info(f"Normalized {len(records)} analyses, {incomplete} with quality warnings")
    return records
