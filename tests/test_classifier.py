import pytest

from app.services import classifier
from app.services.classifier import FeedbackPattern

ALL_KEYWORDS_TEXT = " ".join(k for p in FeedbackPattern for k in p.config.keywords)


@pytest.mark.parametrize("pattern", list(FeedbackPattern))
def test_only_keywords_of_one_category_select_it(pattern):
    text = " ".join(pattern.config.keywords)
    assert classifier.classify(text).category == pattern.slug


@pytest.mark.parametrize("pattern", list(FeedbackPattern))
def test_each_single_keyword_selects_its_category(pattern):
    for kw in pattern.config.keywords:
        assert classifier.classify(kw).category == pattern.slug, kw


def test_more_specific_keyword_wins_tie():
    # "дрібний" (ui) is a substring of "дрібний текст" (mobile)
    r = classifier.classify("Дрібний текст на головній")
    assert r.category == "mobile_issues"
    assert r.detected_patterns == ["mobile_issues", "ui_visibility"]


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input_defaults(text):
    r = classifier.classify(text)
    assert r.category == "ux_issues"
    assert r.priority == "medium"
    assert r.score == 65
    assert not r.is_confident
    assert r.detected_patterns == []


def test_button_not_working_is_critical_form_issue():
    r = classifier.classify("кнопка не працює, критично")
    assert r.category == "form_issues"
    assert r.priority == "critical"
    assert r.score == 70  # 75 + 5 (one pattern) - 10 (short)
    assert "Покращити дизайн та стан кнопок (hover, active, disabled)" in r.tasks
    assert r.estimated_hours == 5  # 5 tasks * 1.5 * 0.7 = 5.25


@pytest.mark.parametrize("severity,expected", [("LOW", "low"), ("high", "high"), (" Critical ", "critical")])
def test_explicit_severity_overrides_keywords(severity, expected):
    assert classifier.classify("кнопка не працює", severity=severity).priority == expected


def test_severity_can_come_from_context():
    assert classifier.classify("форма", {"severity": "low"}).priority == "low"


def test_unknown_severity_is_ignored():
    assert classifier.classify("форма", severity="urgent").priority == "high"


def test_conversion_keywords_are_high_priority():
    r = classifier.classify("Форма реєстрації")
    assert r.category == "form_issues"
    assert r.priority == "high"
    assert r.estimated_hours == 8  # 4 tasks * 1.5 * 1.3 = 7.8


def test_tasks_and_suggestions_are_capped_and_unique():
    r = classifier.classify(ALL_KEYWORDS_TEXT + " колір шрифт кнопка")
    assert len(r.tasks) <= classifier.MAX_TASKS
    assert len(set(r.tasks)) == len(r.tasks)
    assert len(r.suggestions) <= classifier.MAX_SUGGESTIONS
    assert len(set(r.suggestions)) == len(r.suggestions)
    assert len(r.categories) <= 3
    assert len(r.technical_requirements) <= 4
    assert len(r.usability_insights) <= 3


def test_runner_up_tasks_follow_primary_tasks():
    r = classifier.classify("мобільний телефон, повільно")
    primary = list(FeedbackPattern.MOBILE_ISSUES.config.tasks)
    assert r.tasks[:4] == primary
    assert r.tasks[4:6] == list(FeedbackPattern.PERFORMANCE_ISSUES.config.tasks[:2])


def test_mobile_and_performance_add_suggestions_when_room():
    r = classifier.classify("не видно")
    assert r.suggestions[:3] == list(FeedbackPattern.UI_VISIBILITY.config.suggestions)
    assert r.suggestions[3] == classifier.GENERIC_SUGGESTIONS[0]


@pytest.mark.parametrize("text", [
    "",
    "а",
    "не видно",
    "x" * 120,
    "y" * 500,
    ALL_KEYWORDS_TEXT,
    ALL_KEYWORDS_TEXT * 5,
])
def test_score_is_always_in_bounds(text):
    r = classifier.classify(text)
    assert classifier.SCORE_MIN <= r.score <= classifier.SCORE_MAX


def test_score_rewards_detail_and_matches():
    assert classifier.calculate_score(0, 10) == 65
    assert classifier.calculate_score(1, 60) == 80
    assert classifier.calculate_score(3, 150) == 95
    assert classifier.calculate_score(5, 250) == 98  # clamped


def test_hours_round_half_up():
    # 3 * 1.5 = 4.5 must round to 5, not banker's 4
    assert classifier.estimate_hours(3, "medium") == 5
    assert classifier.estimate_hours(5, "medium") == 8
    assert classifier.estimate_hours(4, "low") == 5  # 4.8


def test_caller_category_is_listed_first():
    r = classifier.classify_feedback("Кнопка", "не видно на телефоні", category="bug")
    assert r.categories[0] == "bug"
    assert len(r.categories) <= 3


def test_project_name_prefixes_analysis_text():
    r = classifier.classify("не видно", {"project_name": "Landing"})
    assert r.analysis_text.startswith("Проєкт «Landing»: ")
    assert "Виявлено патернів: 1" in r.analysis_text


def test_keyword_tasks_for_colour_and_typography():
    r = classifier.classify("колір і шрифт")
    assert "Переглянути колірну схему та її контрастність" in r.tasks
    assert "Оптимізувати типографіку та читабельність" in r.tasks


def test_to_dict_shape():
    d = classifier.classify("не видно кнопку").to_dict()
    assert set(d) == {
        "category", "categories", "priority", "estimated_hours", "score", "analysis_text",
        "tasks", "suggestions", "technical_requirements", "usability_insights",
        "detected_patterns", "generated_at", "source",
    }
    assert d["source"] == "mock"


def test_classify_is_deterministic_apart_from_timestamp():
    a = classifier.classify("повільно і незрозуміло").to_dict()
    b = classifier.classify("повільно і незрозуміло").to_dict()
    a.pop("generated_at"), b.pop("generated_at")
    assert a == b


# --- Regeneration ---

@pytest.mark.parametrize("prior", [60, 65, 80, 97, 98])
def test_regeneration_never_lowers_score(prior):
    r = classifier.regenerate("не видно", previous={"score": prior})
    assert r.score >= prior
    assert r.score <= classifier.SCORE_MAX


def test_regeneration_bonus():
    # fresh score for "не видно" is 70
    assert classifier.regenerate("не видно", previous={"score": 60}).score == 75
    assert classifier.regenerate("не видно", previous={"score": 80}).score == 85
    assert classifier.regenerate("не видно").score == 70


def test_regeneration_notes_respect_suggestion_cap():
    r = classifier.regenerate(
        ALL_KEYWORDS_TEXT,
        previous={"score": 90},
        user_feedback="ще є проблема",
        implementation_results="контраст покращено",
    )
    assert r.suggestions[0] == classifier.PRIOR_ANALYSIS_NOTE
    assert r.suggestions[-1] == classifier.USER_FEEDBACK_NOTE
    assert len(r.suggestions) <= classifier.MAX_SUGGESTIONS
    assert r.usability_insights[0] == classifier.IMPLEMENTATION_NOTE
    assert len(r.usability_insights) <= classifier.MAX_INSIGHTS


def test_regeneration_accepts_previous_result_object():
    prev = classifier.classify("не видно")
    assert classifier.regenerate("не видно", previous=prev).score == prev.score + 5


def test_regeneration_with_unreadable_previous_score():
    r = classifier.regenerate("не видно", previous={"score": "n/a"})
    assert r.score == 75
