"""
Design-oriented feedback analyzer.

A second, simpler keyword analyzer used by the ``/api/feedback/analyze``,
``/recommendations`` and ``/accessibility-check`` endpoints. Independent of the
pattern classifier in ``app.services.classifier``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import List


class DesignCategory(str, Enum):
    COLORS = "colors"
    TYPOGRAPHY = "typography"
    LAYOUT = "layout"
    UX = "ux"
    ACCESSIBILITY = "accessibility"
    BRANDING = "branding"


SENTIMENT_POSITIVE = "positive"
SENTIMENT_NEUTRAL = "neutral"
SENTIMENT_NEGATIVE = "negative"

PRIORITY_LOW = "low"
PRIORITY_MEDIUM = "medium"
PRIORITY_HIGH = "high"

# First match wins, in this order
_CATEGORY_KEYWORDS = (
    (DesignCategory.COLORS, ("колір", "кольор", "схема")),
    (DesignCategory.TYPOGRAPHY, ("шрифт", "текст", "читабельн")),
    (DesignCategory.LAYOUT, ("розташ", "макет", "компоновк")),
    (DesignCategory.ACCESSIBILITY, ("доступн", "accessibility", "контраст")),
    (DesignCategory.BRANDING, ("логотип", "бренд", "фірмов")),
)

_HIGH_PRIORITY_KEYWORDS = ("критичн", "терміново", "не працює")
_LOW_PRIORITY_KEYWORDS = ("непогано", "можна", "бажано")

# "не подобається" contains "подобається", so negatives are checked first
_NEGATIVE_KEYWORDS = ("не подобається", "погано", "проблема")
_POSITIVE_KEYWORDS = ("чудово", "відмінно", "подобається")

_DESIGN_SCORES = {
    SENTIMENT_POSITIVE: 8.5,
    SENTIMENT_NEGATIVE: 5.2,
    SENTIMENT_NEUTRAL: 7.0,
}

# (negative wording, neutral/positive wording)
_ANALYSIS_TEMPLATES = {
    DesignCategory.COLORS: (
        "Виявлено проблеми з кольоровою схемою. Рекомендується перевірити контрастність та відповідність бренду.",
        "Кольорова палітра підібрана гармонійно. Варто розглянути додаткові акцентні кольори.",
    ),
    DesignCategory.TYPOGRAPHY: (
        "Типографіка потребує оптимізації. Перевірте розміри шрифтів та інтерліньяж.",
        "Шрифтова ієрархія побудована логічно. Можна розглянути альтернативні гарнітури.",
    ),
    DesignCategory.LAYOUT: (
        "Компоновка елементів потребує перегляду. Рекомендується поліпшити візуальну ієрархію.",
        "Макет структурований добре. Варто оптимізувати відступи між блоками.",
    ),
    DesignCategory.UX: (
        "Виявлено проблеми з користувацьким досвідом. Потрібно спростити user journey.",
        "Користувацький досвід інтуїтивний. Можна додати мікроанімації для покращення.",
    ),
    DesignCategory.ACCESSIBILITY: (
        "Знайдено порушення доступності. Терміново потрібно виправити контрастність та навігацію.",
        "Рівень доступності задовільний. Рекомендується додати ARIA-атрибути.",
    ),
    DesignCategory.BRANDING: (
        "Брендинг не узгоджується з фірмовим стилем. Потрібно переглянути використання логотипу.",
        "Фірмовий стиль витриманий послідовно. Варто розширити палітру брендових елементів.",
    ),
}

_RECOMMENDATIONS = {
    DesignCategory.COLORS: (
        "Перевірити контрастність за стандартами WCAG AA",
        "Створити палітру з 3-5 основних кольорів",
        "Додати темну тему для користувачів",
    ),
    DesignCategory.TYPOGRAPHY: (
        "Використовувати мінімум 16px для основного тексту",
        "Встановити чіткий інтерліньяж (1.4-1.6)",
        "Обмежити кількість шрифтових гарнітур до 2-3",
    ),
    DesignCategory.LAYOUT: (
        "Дотримуватися правила золотого перерізу",
        "Використовувати послідовні відступи (8px grid)",
        "Забезпечити адаптивність під мобільні пристрої",
    ),
    DesignCategory.UX: (
        "Скоротити кількість кроків до цільової дії",
        "Додати мікроанімації для зворотного зв'язку",
        "Провести A/B тестування ключових елементів",
    ),
    DesignCategory.ACCESSIBILITY: (
        "Забезпечити контрастність мінімум 4.5:1",
        "Додати alt-тексти для всіх зображень",
        "Реалізувати повну навігацію з клавіатури",
    ),
    DesignCategory.BRANDING: (
        "Створити style guide для команди",
        "Забезпечити консистентність у всіх точках контакту",
        "Розробити адаптивні версії логотипу",
    ),
}

_ACCESSIBILITY_REPORT = {
    "score": 7.2,
    "issues": [
        "Недостатній контраст для тексту на кнопках",
        "Відсутні aria-labels для іконок",
        "Фокус не завжди видимий при навігації з клавіатури",
    ],
    "improvements": [
        "Збільшити контрастність до рівня AA",
        "Додати описи для декоративних елементів",
        "Реалізувати skip-to-content посилання",
    ],
}


@dataclass(frozen=True)
class DesignAnalysis:
    category: str
    priority: str
    design_score: float
    analysis: str
    recommendations: List[str]
    sentiment: str

    def to_dict(self) -> dict:
        return asdict(self)


def _category(text: str) -> DesignCategory:
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in text for k in keywords):
            return category
    return DesignCategory.UX


def _priority(text: str) -> str:
    if any(k in text for k in _HIGH_PRIORITY_KEYWORDS):
        return PRIORITY_HIGH
    if any(k in text for k in _LOW_PRIORITY_KEYWORDS):
        return PRIORITY_LOW
    return PRIORITY_MEDIUM


def _sentiment(text: str) -> str:
    if any(k in text for k in _NEGATIVE_KEYWORDS):
        return SENTIMENT_NEGATIVE
    if any(k in text for k in _POSITIVE_KEYWORDS):
        return SENTIMENT_POSITIVE
    return SENTIMENT_NEUTRAL


def _coerce_category(category) -> DesignCategory:
    if isinstance(category, DesignCategory):
        return category
    try:
        return DesignCategory(str(category or "").strip().lower())
    except ValueError:
        return DesignCategory.UX


def analyze(content: str) -> DesignAnalysis:
    text = (content or "").lower()
    category = _category(text)
    sentiment = _sentiment(text)
    negative, other = _ANALYSIS_TEMPLATES[category]
    return DesignAnalysis(
        category=category.value,
        priority=_priority(text),
        design_score=_DESIGN_SCORES[sentiment],
        analysis=negative if sentiment == SENTIMENT_NEGATIVE else other,
        recommendations=recommendations(category),
        sentiment=sentiment,
    )


def recommendations(category, project_type: str = "web") -> List[str]:
    """Three canned recommendations; unknown categories get the UX set.

    ``project_type`` is accepted for API compatibility; the canned sets do not
    vary by it.
    """
    return list(_RECOMMENDATIONS[_coerce_category(category)])


def evaluate_accessibility(description: str) -> dict:
    return {
        "score": _ACCESSIBILITY_REPORT["score"],
        "issues": list(_ACCESSIBILITY_REPORT["issues"]),
        "improvements": list(_ACCESSIBILITY_REPORT["improvements"]),
    }
