"""
Rule-based feedback classifier.

Maps free-text client feedback (title + description, mostly Ukrainian) to a
pattern category, a priority, a confidence score and a capped list of designer
tasks and suggestions. Pure functions over an immutable pattern table: no I/O,
no randomness, no app context. Latency simulation and persistence live in
``app.services.analysis``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Tuple

PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"
PRIORITY_CRITICAL = "critical"
PRIORITIES = (PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH, PRIORITY_CRITICAL)

MAX_TASKS = 6
MAX_SUGGESTIONS = 4
MAX_CATEGORY_LABELS = 3
MAX_REQUIREMENTS = 4
MAX_INSIGHTS = 3

SCORE_BASE = 75
SCORE_MIN = 60
SCORE_MAX = 98
# Scores below this are "not confident"
CONFIDENT_SCORE = 75
REGENERATION_BONUS = 5

HOURS_PER_TASK = 1.5
PRIORITY_EFFORT_MULTIPLIER = {
    PRIORITY_LOW: 0.8,
    PRIORITY_MEDIUM: 1.0,
    PRIORITY_HIGH: 1.3,
    PRIORITY_CRITICAL: 0.7,  # urgent but usually small fixes
}

CRITICAL_KEYWORDS = ("не працює", "зламано", "помилка", "краш", "недоступно")
CONVERSION_KEYWORDS = ("кнопка", "форма", "замовлення", "оплата", "реєстрація")

GENERIC_SUGGESTIONS = (
    "Документувати зміни для майбутніх оновлень",
    "Створити style guide для подібних елементів",
)
GENERIC_INSIGHTS = (
    "Рекомендується провести usability тестування після впровадження змін",
    "Розглянути можливість A/B тестування різних варіантів рішення",
)

PRIOR_ANALYSIS_NOTE = "Врахувати результати попереднього аналізу"
USER_FEEDBACK_NOTE = "Інкорпорувати додатковий фідбек користувача"
IMPLEMENTATION_NOTE = "Врахувати результати впровадження попередніх змін"


@dataclass(frozen=True)
class PatternConfig:
    keywords: Tuple[str, ...]
    tasks: Tuple[str, ...]
    suggestions: Tuple[str, ...]
    labels: Tuple[str, ...]
    summary: str
    requirements: Tuple[str, ...] = ()


class FeedbackPattern(Enum):
    """Pattern categories in table order; each member carries its own config."""

    UI_VISIBILITY = "ui_visibility", PatternConfig(
        keywords=("не видно", "не помітно", "сховано", "дрібний", "блідний", "незручно знайти"),
        tasks=(
            "Збільшити контрастність елемента відносно фону",
            "Додати візуальні акценти (тінь, обводка, градієнт)",
            "Оптимізувати розміри та позиціонування",
            "Провести A/B тест видимості елемента",
        ),
        suggestions=(
            "Перевірити дотримання принципів контрастності WCAG",
            "Розглянути додавання мікроанімацій для привернення уваги",
            "Тестувати на різних екранах та при різному освітленні",
        ),
        labels=("дизайн", "UX"),
        summary="Ключовий елемент інтерфейсу важко помітити: бракує контрасту або візуальної ваги.",
        requirements=("WCAG 2.1 AA сумісність", "Контрастність мінімум 4.5:1", "Keyboard navigation"),
    )
    MOBILE_ISSUES = "mobile_issues", PatternConfig(
        keywords=("мобільний", "телефон", "планшет", "дрібний текст", "важко натиснути", "сенсорний"),
        tasks=(
            "Збільшити мінімальний розмір шрифту до 16px для мобільних",
            "Оптимізувати touch targets (мінімум 44px)",
            "Покращити адаптивність інтерфейсу",
            "Перевірити читабельність на малих екранах",
        ),
        suggestions=(
            "Використати CSS clamp() для адаптивних розмірів",
            "Провести тестування на реальних пристроях",
            "Розглянути Progressive Web App підходи",
        ),
        labels=("мобільний", "адаптивність"),
        summary="Інтерфейс погано адаптований до мобільних пристроїв і сенсорного керування.",
        requirements=(
            "Responsive design для екранів 320px+",
            "Touch-friendly інтерфейси (44px мінімум)",
            "Тестування на iOS та Android",
        ),
    )
    FORM_ISSUES = "form_issues", PatternConfig(
        keywords=("форма", "не працює", "не відправляється", "кнопка не реагує", "помилка"),
        tasks=(
            "Додати візуальний індикатор завантаження",
            "Створити чіткі повідомлення про помилки",
            "Покращити валідацію полів з миттєвим фідбеком",
            "Додати fallback для випадків без JavaScript",
        ),
        suggestions=(
            "Реалізувати автозбереження чернетки",
            "Додати прогрес-індикатори для довгих операцій",
            "Покращити accessibility для screen readers",
        ),
        labels=("функціональність", "UX"),
        summary="Форма або інтерактивний елемент не дає користувачу очікуваного результату.",
    )
    PERFORMANCE_ISSUES = "performance_issues", PatternConfig(
        keywords=("повільно", "тормозить", "довго завантажується", "лагає", "зависає"),
        tasks=(
            "Оптимізувати зображення та мультимедіа",
            "Впровадити lazy loading для контенту",
            "Мінімізувати JavaScript та CSS",
            "Додати skeleton loading states",
        ),
        suggestions=(
            "Використати CDN для статичних ресурсів",
            "Впровадити кешування на клієнті",
            "Розглянути Server-Side Rendering",
        ),
        labels=("продуктивність", "технічні"),
        summary="Повільна робота інтерфейсу погіршує користувацький досвід.",
        requirements=("Core Web Vitals оптимізація", "Lazy loading зображень", "Bundle size оптимізація"),
    )
    UX_ISSUES = "ux_issues", PatternConfig(
        keywords=("незрозуміло", "складно", "не інтуїтивно", "заплутано", "не знаю що робити"),
        tasks=(
            "Покращити копірайтинг та мікротексти",
            "Додати підказки та onboarding елементи",
            "Оптимізувати user flow та навігацію",
            "Створити більш чітку ІА (інформаційну архітектуру)",
        ),
        suggestions=(
            "Провести usability тестування",
            "Додати інтерактивні туториали",
            "Використати принципи progressive disclosure",
        ),
        labels=("UX", "usability"),
        summary="Користувачу складно зрозуміти, що робити далі: потрібні чіткіша навігація та підказки.",
    )

    def __init__(self, slug: str, config: PatternConfig):
        self.slug = slug
        self.config = config

    @classmethod
    def from_slug(cls, slug: str) -> "FeedbackPattern":
        for pattern in cls:
            if pattern.slug == slug:
                return pattern
        raise ValueError(f"unknown pattern: {slug!r}")


DEFAULT_PATTERN = FeedbackPattern.UX_ISSUES

# (trigger substrings, task) appended after the pattern tasks
KEYWORD_TASKS = (
    (("кольор", "колір"), "Переглянути колірну схему та її контрастність"),
    (("шрифт", "текст"), "Оптимізувати типографіку та читабельність"),
    (("кнопка",), "Покращити дизайн та стан кнопок (hover, active, disabled)"),
)


@dataclass(frozen=True)
class PatternMatch:
    pattern: FeedbackPattern
    keywords: Tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.keywords)

    @property
    def weight(self) -> int:
        return sum(len(k) for k in self.keywords)


@dataclass
class AnalysisResult:
    category: str
    categories: List[str]
    priority: str
    estimated_hours: int
    score: int
    analysis_text: str
    tasks: List[str]
    suggestions: List[str]
    technical_requirements: List[str]
    usability_insights: List[str]
    detected_patterns: List[str]
    generated_at: str
    source: str = "mock"

    @property
    def is_confident(self) -> bool:
        return self.score >= CONFIDENT_SCORE

    def to_dict(self) -> dict:
        return dict(
            category=self.category,
            categories=list(self.categories),
            priority=self.priority,
            estimated_hours=self.estimated_hours,
            score=self.score,
            analysis_text=self.analysis_text,
            tasks=list(self.tasks),
            suggestions=list(self.suggestions),
            technical_requirements=list(self.technical_requirements),
            usability_insights=list(self.usability_insights),
            detected_patterns=list(self.detected_patterns),
            generated_at=self.generated_at,
            source=self.source,
        )


def _normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(score: float) -> int:
    return int(min(max(score, SCORE_MIN), SCORE_MAX))


def normalize_severity(severity: Optional[str]) -> Optional[str]:
    """'HIGH' / 'high' -> 'high'; anything unknown -> None."""
    if not severity or not isinstance(severity, str):
        return None
    value = severity.strip().lower()
    return value if value in PRIORITIES else None


def detect_patterns(text: str) -> List[PatternMatch]:
    """
    Patterns with at least one keyword in ``text`` (already lower-cased),
    strongest first: more distinct keywords, then longer matched keywords,
    then table order.
    """
    matches = []
    for pattern in FeedbackPattern:
        found = tuple(k for k in pattern.config.keywords if k in text)
        if found:
            matches.append(PatternMatch(pattern, found))
    # sort is stable, so equal keys keep table order
    return sorted(matches, key=lambda m: (-m.count, -m.weight))


def _tasks(text: str, primary: FeedbackPattern, detected: List[FeedbackPattern]) -> List[str]:
    tasks = list(primary.config.tasks)
    for runner_up in detected[1:3]:
        tasks.extend(runner_up.config.tasks[:2])
    for triggers, task in KEYWORD_TASKS:
        if any(t in text for t in triggers):
            tasks.append(task)
    return _dedupe(tasks)[:MAX_TASKS]


def _suggestions(primary: FeedbackPattern, detected: List[FeedbackPattern]) -> List[str]:
    suggestions = list(primary.config.suggestions)
    suggestions.extend(GENERIC_SUGGESTIONS)
    if FeedbackPattern.MOBILE_ISSUES in detected:
        suggestions.append("Розглянути mobile-first підхід у дизайні")
    if FeedbackPattern.PERFORMANCE_ISSUES in detected:
        suggestions.append("Співпрацювати з розробниками для оптимізації")
    return _dedupe(suggestions)[:MAX_SUGGESTIONS]


def determine_priority(text: str, severity: Optional[str] = None) -> str:
    explicit = normalize_severity(severity)
    if explicit:
        return explicit
    if any(k in text for k in CRITICAL_KEYWORDS):
        return PRIORITY_CRITICAL
    if any(k in text for k in CONVERSION_KEYWORDS):
        return PRIORITY_HIGH
    return PRIORITY_MEDIUM


def estimate_hours(task_count: int, priority: str) -> int:
    return _round_half_up(task_count * HOURS_PER_TASK * PRIORITY_EFFORT_MULTIPLIER.get(priority, 1.0))


def calculate_score(detected_count: int, text_length: int) -> int:
    score = SCORE_BASE
    score += min(detected_count * 5, 15)
    if text_length > 100:
        score += 5
    if text_length > 200:
        score += 5
    if text_length < 50:
        score -= 10
    return clamp_score(score)


def _category_labels(detected: List[FeedbackPattern], caller_category: Optional[str]) -> List[str]:
    labels = [caller_category] if caller_category else []
    for pattern in detected:
        labels.extend(pattern.config.labels)
    return _dedupe(labels)[:MAX_CATEGORY_LABELS]


def _technical_requirements(detected: List[FeedbackPattern]) -> List[str]:
    requirements = []
    for pattern in FeedbackPattern:
        if pattern in detected:
            requirements.extend(pattern.config.requirements)
    return requirements[:MAX_REQUIREMENTS]


def _usability_insights(text: str, detected: List[FeedbackPattern]) -> List[str]:
    insights = []
    if "не знаю" in text or "незрозуміло" in text:
        insights.append("Користувач потребує кращих підказок та навігації")
    if "довго" in text or "повільно" in text:
        insights.append("Швидкість відгуку критично впливає на UX")
    if FeedbackPattern.MOBILE_ISSUES in detected:
        insights.append("Mobile experience потребує окремої уваги та тестування")
    if "кнопка" in text and ("не працює" in text or "не реагує" in text):
        insights.append("Критична проблема з основним user flow")
    insights.extend(GENERIC_INSIGHTS)
    return insights[:MAX_INSIGHTS]


def _analysis_text(primary: FeedbackPattern, detected_count: int, project_name: Optional[str]) -> str:
    prefix = f"Проєкт «{project_name}»: " if project_name else ""
    if not detected_count:
        return f"{prefix}Чітких патернів не виявлено, застосовано загальний UX-аналіз. {primary.config.summary}"
    return f"{prefix}{primary.config.summary} Виявлено патернів: {detected_count}."


def classify(
    text: Optional[str],
    context: Optional[Mapping[str, Any]] = None,
    *,
    severity: Optional[str] = None,
    category: Optional[str] = None,
) -> AnalysisResult:
    """
    Classify free-text feedback.

    ``context`` may carry ``project_name``, ``project_description``, ``url`` and
    ``severity``; an explicit ``severity`` argument wins over the context one.
    ``category`` is the caller's own label and is listed first in ``categories``.
    Never raises for string input: empty text falls through to the default
    pattern with a low score.
    """
    context = context or {}
    normalized = _normalize(text)

    matches = detect_patterns(normalized)
    detected = [m.pattern for m in matches]
    primary = detected[0] if detected else DEFAULT_PATTERN

    tasks = _tasks(normalized, primary, detected)
    priority = determine_priority(normalized, severity or context.get("severity"))

    return AnalysisResult(
        category=primary.slug,
        categories=_category_labels(detected, category),
        priority=priority,
        estimated_hours=estimate_hours(len(tasks), priority),
        score=calculate_score(len(detected), len(normalized)),
        analysis_text=_analysis_text(primary, len(detected), context.get("project_name")),
        tasks=tasks,
        suggestions=_suggestions(primary, detected),
        technical_requirements=_technical_requirements(detected),
        usability_insights=_usability_insights(normalized, detected),
        detected_patterns=[p.slug for p in detected],
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def feedback_text(title: Optional[str], description: Optional[str]) -> str:
    return f"{title or ''} {description or ''}"


def classify_feedback(
    title: Optional[str],
    description: Optional[str],
    *,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> AnalysisResult:
    return classify(feedback_text(title, description), context, severity=severity, category=category)


def _previous_score(previous: Any) -> Optional[int]:
    if previous is None:
        return None
    score = previous.get("score") if isinstance(previous, Mapping) else getattr(previous, "score", None)
    try:
        return int(score)
    except (TypeError, ValueError):
        return None


def apply_regeneration(
    fresh: AnalysisResult,
    previous: Any = None,
    user_feedback: Optional[str] = None,
    implementation_results: Optional[str] = None,
) -> AnalysisResult:
    """
    Fold the regeneration context into a freshly computed analysis.

    With a previous analysis the score never drops below the prior one and is
    nudged up by ``REGENERATION_BONUS`` (still clamped). Notes about the prior
    analysis and extra user feedback go into the suggestions without breaking
    the suggestion cap.
    """
    score = fresh.score
    front, back = [], []
    if previous is not None:
        prior = _previous_score(previous)
        score = clamp_score(max(score, prior if prior is not None else score) + REGENERATION_BONUS)
        front.append(PRIOR_ANALYSIS_NOTE)
    if user_feedback:
        back.append(USER_FEEDBACK_NOTE)

    room = MAX_SUGGESTIONS - len(front) - len(back)
    middle = [s for s in fresh.suggestions if s not in front and s not in back][:room]
    suggestions = _dedupe(front + middle + back)

    insights = list(fresh.usability_insights)
    if implementation_results:
        insights = _dedupe([IMPLEMENTATION_NOTE] + insights)[:MAX_INSIGHTS]

    return replace(fresh, score=score, suggestions=suggestions, usability_insights=insights)


def regenerate(
    text: Optional[str],
    context: Optional[Mapping[str, Any]] = None,
    *,
    severity: Optional[str] = None,
    category: Optional[str] = None,
    previous: Any = None,
    user_feedback: Optional[str] = None,
    implementation_results: Optional[str] = None,
) -> AnalysisResult:
    """Re-run ``classify`` and fold in the previous analysis and extra human feedback."""
    fresh = classify(text, context, severity=severity, category=category)
    return apply_regeneration(fresh, previous, user_feedback, implementation_results)
