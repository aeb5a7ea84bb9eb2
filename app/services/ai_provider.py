"""
Optional external analysis provider (OpenAI chat completions).

Only used when ``AI_PROVIDER=openai`` and ``OPENAI_API_KEY`` is set. Every
failure surfaces as ``ProviderUnavailable`` so the caller can fall back to the
keyword classifier. Provider output is forced through the same caps and clamps
as the classifier's own results.
"""
from __future__ import annotations

import json
import time
from typing import Any, Mapping, Optional

from flask import current_app

from app.services import classifier
from app.services.classifier import AnalysisResult


class ProviderError(Exception): ...
class ProviderUnavailable(ProviderError): ...
class ProviderTimeout(ProviderUnavailable): ...


SYSTEM_PROMPT = (
    "Ти експерт з UX/UI дизайну. Проаналізуй фідбек клієнта та поверни JSON об'єкт з полями: "
    '"category" (одна з: ui_visibility, mobile_issues, form_issues, performance_issues, ux_issues), '
    '"priority" (low|medium|high|critical), "score" (60-98), "analysis_text", '
    '"tasks" (до 6), "suggestions" (до 4), "technical_requirements" (до 4), "usability_insights" (до 3).'
)


def provider_enabled() -> bool:
    cfg = current_app.config
    return cfg.get("AI_PROVIDER") == "openai" and bool(cfg.get("OPENAI_API_KEY"))


def _str_list(value: Any, limit: int) -> list:
    if not isinstance(value, (list, tuple)):
        return []
    items = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    return classifier._dedupe(items)[:limit]


def normalize(payload: Mapping[str, Any], baseline: AnalysisResult) -> AnalysisResult:
    """
    Coerce a provider payload into an ``AnalysisResult``.

    Missing or malformed fields are taken from ``baseline`` (the classifier's
    own answer for the same input); lists are deduplicated and capped, the
    score is clamped and the priority must be a known one.
    """
    category = payload.get("category")
    try:
        category = classifier.FeedbackPattern.from_slug(category).slug
    except ValueError:
        category = baseline.category

    priority = classifier.normalize_severity(payload.get("priority")) or baseline.priority

    try:
        score = classifier.clamp_score(float(payload.get("score")))
    except (TypeError, ValueError):
        score = baseline.score

    tasks = _str_list(payload.get("tasks"), classifier.MAX_TASKS) or baseline.tasks
    analysis_text = payload.get("analysis_text")
    if not isinstance(analysis_text, str) or not analysis_text.strip():
        analysis_text = baseline.analysis_text

    return AnalysisResult(
        category=category,
        categories=baseline.categories,
        priority=priority,
        estimated_hours=classifier.estimate_hours(len(tasks), priority),
        score=score,
        analysis_text=analysis_text.strip(),
        tasks=tasks,
        suggestions=_str_list(payload.get("suggestions"), classifier.MAX_SUGGESTIONS) or baseline.suggestions,
        technical_requirements=(
            _str_list(payload.get("technical_requirements"), classifier.MAX_REQUIREMENTS)
            or baseline.technical_requirements
        ),
        usability_insights=(
            _str_list(payload.get("usability_insights"), classifier.MAX_INSIGHTS) or baseline.usability_insights
        ),
        detected_patterns=baseline.detected_patterns,
        generated_at=baseline.generated_at,
        source="openai",
    )


class OpenAIProvider:
    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        cfg = config if config is not None else current_app.config
        api_key = cfg.get("OPENAI_API_KEY")
        if not api_key:
            raise ProviderUnavailable("OPENAI_API_KEY is not set")
        import openai  # only needed when the provider is enabled

        self._client = openai.OpenAI(
            api_key=api_key,
            base_url=cfg.get("OPENAI_BASE_URL") or None,
            timeout=cfg.get("OPENAI_TIMEOUT", 20.0),
            max_retries=0,  # retries are ours
        )
        self.model = cfg.get("OPENAI_MODEL", "gpt-4o-mini")
        self.max_retries = int(cfg.get("OPENAI_MAX_RETRIES", 2))
        self.backoff_base_ms = int(cfg.get("OPENAI_BACKOFF_BASE_MS", 200))

    def _chat_once(self, text: str, context: Mapping[str, Any]) -> dict:
        prompt = json.dumps({"feedback": text, "project": dict(context)}, ensure_ascii=False)
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        content = resp.choices[0].message.content if getattr(resp, "choices", None) else ""
        data = json.loads(content or "")
        if not isinstance(data, dict):
            raise ValueError("provider returned a non-object JSON payload")
        return data

    @staticmethod
    def _classify(err: Exception) -> str:
        """'timeout' | 'rate_limit' | 'server' | 'client' | 'unknown'"""
        code = getattr(err, "status_code", None) or getattr(getattr(err, "response", None), "status_code", None)
        name = type(err).__name__.lower()
        msg = str(err).lower()
        if "timeout" in name or "timed out" in msg:
            return "timeout"
        if code == 429 or ("rate" in msg and "limit" in msg):
            return "rate_limit"
        if code and int(code) >= 500:
            return "server"
        if code and 400 <= int(code) < 500:
            return "client"
        return "unknown"

    def analyze(self, text: str, context: Optional[Mapping[str, Any]] = None, *, baseline: AnalysisResult) -> AnalysisResult:
        """
        Short retry with exponential backoff, then reclassify the last error:
        timeout -> ProviderTimeout, anything else -> ProviderUnavailable.
        """
        attempts = self.max_retries + 1
        last_err: Optional[Exception] = None
        for i in range(attempts):
            try:
                return normalize(self._chat_once(text, context or {}), baseline)
            except Exception as e:
                last_err = e
                if i == attempts - 1:
                    break
                time.sleep(self.backoff_base_ms * (2 ** i) / 1000.0)

        kind = self._classify(last_err) if last_err else "unknown"
        if kind == "timeout":
            raise ProviderTimeout(f"OpenAI timeout after {attempts} attempt(s): {last_err}")
        raise ProviderUnavailable(f"OpenAI unavailable ({kind}) after {attempts} attempt(s): {last_err}")
