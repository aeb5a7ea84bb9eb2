"""
Feedback analysis orchestration: provider selection, fallback to the keyword
classifier, simulated latency and persistence of the result on the feedback.
"""
from __future__ import annotations

import json
import random
import time
from collections import Counter
from typing import Optional

from flask import current_app

from app.extensions import db
from app.models.feedback import Feedback
from app.services import classifier
from app.services.ai_provider import OpenAIProvider, ProviderError, provider_enabled
from app.services.classifier import AnalysisResult


def _log(event: str, **fields) -> None:
    current_app.logger.info(json.dumps({"event": event, **fields}))


def _simulate_latency() -> None:
    lo = float(current_app.config.get("AI_MOCK_DELAY_MIN", 0) or 0)
    hi = float(current_app.config.get("AI_MOCK_DELAY_MAX", 0) or 0)
    if hi <= 0:
        return
    time.sleep(random.uniform(lo, max(lo, hi)))


def feedback_context(feedback: Feedback) -> dict:
    return feedback.project.to_context() if feedback.project else {}


def run_analysis(
    text: str,
    context: Optional[dict] = None,
    *,
    severity: Optional[str] = None,
    category: Optional[str] = None,
    feedback_id: Optional[int] = None,
) -> AnalysisResult:
    """Provider first when configured; the keyword classifier answers otherwise."""
    baseline = classifier.classify(text, context, severity=severity, category=category)
    if provider_enabled():
        try:
            result = OpenAIProvider().analyze(text, context, baseline=baseline)
            if classifier.normalize_severity(severity):
                # explicit severity beats whatever the provider guessed
                result.priority = baseline.priority
                result.estimated_hours = classifier.estimate_hours(len(result.tasks), result.priority)
            return result
        except ProviderError as e:
            current_app.logger.warning(json.dumps({
                "event": "analysis_fallback",
                "feedback_id": feedback_id,
                "reason": str(e),
            }))
    _simulate_latency()
    return baseline


def analyze_feedback(feedback: Feedback, *, explicit_severity: bool = True) -> AnalysisResult:
    """
    Analyse ``feedback`` and store the result on it (caller commits).

    With ``explicit_severity=False`` the stored severity is taken from the
    analysed priority instead of being passed to the classifier.
    """
    severity = feedback.severity if explicit_severity else None
    result = run_analysis(
        classifier.feedback_text(feedback.title, feedback.description),
        feedback_context(feedback),
        severity=severity,
        category=feedback.category,
        feedback_id=feedback.id,
    )
    if not explicit_severity:
        feedback.severity = result.priority
    feedback.ai_analysis = result.to_dict()
    feedback.needs_ai_regeneration = False
    _log("feedback_analyzed", feedback_id=feedback.id, category=result.category,
         priority=result.priority, score=result.score, source=result.source)
    return result


def try_analyze_feedback(feedback: Feedback, *, explicit_severity: bool = True) -> Optional[AnalysisResult]:
    """Like ``analyze_feedback`` but a failure leaves the feedback flagged for regeneration."""
    try:
        return analyze_feedback(feedback, explicit_severity=explicit_severity)
    except Exception:
        current_app.logger.exception(json.dumps({"event": "analysis_failed", "feedback_id": feedback.id}))
        feedback.ai_analysis = None
        feedback.needs_ai_regeneration = True
        return None


def regenerate_feedback_analysis(
    feedback: Feedback,
    user_feedback: Optional[str] = None,
    implementation_results: Optional[str] = None,
) -> AnalysisResult:
    previous = feedback.ai_analysis or None
    fresh = run_analysis(
        classifier.feedback_text(feedback.title, feedback.description),
        feedback_context(feedback),
        severity=feedback.severity,
        category=feedback.category,
        feedback_id=feedback.id,
    )
    result = classifier.apply_regeneration(fresh, previous, user_feedback, implementation_results)
    feedback.ai_analysis = result.to_dict()
    feedback.needs_ai_regeneration = False
    _log("feedback_reanalyzed", feedback_id=feedback.id, score=result.score,
         previous_score=(previous or {}).get("score"))
    return result


def ai_stats() -> dict:
    """Analytics over stored analyses of live feedback."""
    rows = db.session.execute(
        db.select(Feedback.ai_analysis, Feedback.needs_ai_regeneration).where(Feedback.is_deleted.is_(False))
    ).all()

    analyses = [a for a, _ in rows if isinstance(a, dict)]
    scores = [a["score"] for a in analyses if isinstance(a.get("score"), (int, float))]
    categories = Counter(a.get("category") for a in analyses if a.get("category"))
    priorities = Counter(a.get("priority") for a in analyses if a.get("priority"))

    return {
        "total_feedback": len(rows),
        "total_analyzed": len(analyses),
        "average_score": round(sum(scores) / len(scores), 1) if scores else None,
        "confident_share": (
            round(sum(1 for s in scores if s >= classifier.CONFIDENT_SCORE) / len(scores), 2) if scores else None
        ),
        "top_categories": [{"category": c, "count": n} for c, n in categories.most_common(3)],
        "priorities": {p: priorities.get(p, 0) for p in classifier.PRIORITIES},
        "pending_regeneration": sum(1 for _, pending in rows if pending),
    }
