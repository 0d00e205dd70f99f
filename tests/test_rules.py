from datetime import datetime, timedelta

import pytest

from spend_categorizer.classifiers.base import ClassificationContext
from spend_categorizer.classifiers.rules import RuleClassifier, RuleMatcher
from spend_categorizer.models import Category, Rule, TransactionText


def make_rule(rule_id: str, pattern: str, category_id: str = "c1", **kwargs) -> Rule:
    return Rule(id=rule_id, pattern=pattern, category_id=category_id, **kwargs)


def test_equal_priority_longer_pattern_wins() -> None:
    rules = [
        make_rule("p1", "a101", "market", priority=10),
        make_rule("p2", "a101 express", "express", priority=10),
    ]
    matcher = RuleMatcher.compile(rules)

    hit = matcher.match("A101 EXPRESS MARKET", None)

    assert hit is not None
    assert hit.id == "p2"
    assert hit.category_id == "express"


def test_priority_beats_pattern_length() -> None:
    rules = [
        make_rule("long", "a101 express", priority=20),
        make_rule("short", "a101", priority=10),
    ]
    hit = RuleMatcher.compile(rules).match("A101 EXPRESS", None)
    assert hit is not None
    assert hit.id == "short"


def test_equal_priority_and_length_falls_back_to_creation_order() -> None:
    now = datetime(2024, 1, 1)
    rules = [
        make_rule("newer", "migros", priority=5, created_at=now + timedelta(days=1)),
        make_rule("older", "MIGROS", priority=5, created_at=now),
    ]
    hit = RuleMatcher.compile(rules).match("Migros", None)
    assert hit is not None
    assert hit.id == "older"


def test_literal_match_is_case_insensitive() -> None:
    matcher = RuleMatcher.compile([make_rule("r", "StarBucks")])
    assert matcher.match("STARBUCKS KADIKOY", None) is not None
    assert matcher.match("starbucks", None) is not None


def test_regex_match_is_case_insensitive() -> None:
    matcher = RuleMatcher.compile([make_rule("r", r"^shell\s+\d+", is_regex=True)])
    assert matcher.match("SHELL 1234 ISTANBUL", None) is not None
    assert matcher.match("BP 1234", None) is None


def test_invalid_regex_never_matches_and_does_not_raise() -> None:
    matcher = RuleMatcher.compile([
        make_rule("bad", "([unclosed", is_regex=True, priority=1),
        make_rule("good", "unclosed", priority=2),
    ])
    hit = matcher.match("([unclosed store", None)
    assert hit is not None
    assert hit.id == "good"


def test_merchant_only_ignores_description() -> None:
    matcher = RuleMatcher.compile([make_rule("r", "netflix", merchant_only=True)])
    assert matcher.match("CARD PAYMENT", "netflix monthly") is None

    full = RuleMatcher.compile([make_rule("r", "netflix", merchant_only=False)])
    hit = full.match("CARD PAYMENT", "Netflix monthly")
    assert hit is not None


def test_empty_haystack_matches_nothing() -> None:
    matcher = RuleMatcher.compile([make_rule("r", ".*", is_regex=True)])
    assert matcher.match(None, None) is None
    assert matcher.match("", "description only") is None


def test_dangling_category_rules_are_dropped() -> None:
    rules = [
        make_rule("ghost", "migros", "deleted-category", priority=1),
        make_rule("real", "migros", "market", priority=2),
    ]
    matcher = RuleMatcher.compile(rules, category_ids=["market"])

    assert len(matcher) == 1
    hit = matcher.match("MIGROS", None)
    assert hit is not None
    assert hit.id == "real"


@pytest.mark.parametrize(
    ("pattern", "expected"),
    [
        ("bim", 0.915),
        ("a" * 18, 0.99),
        ("a" * 100, 0.99),
    ],
)
def test_rule_confidence_grows_with_pattern_length(pattern: str, expected: float) -> None:
    classifier = RuleClassifier(RuleMatcher([]))
    assert classifier.confidence_for(pattern) == pytest.approx(expected)


def test_rule_classifier_returns_category_and_rule_id() -> None:
    market = Category(id="market", name="Market")
    matcher = RuleMatcher.compile([make_rule("r1", "migros", "market")])
    classifier = RuleClassifier(matcher)

    result = classifier.classify(
        TransactionText(merchant="MIGROS KADIKOY"),
        ClassificationContext(categories=[market]),
    )

    assert result is not None
    assert result.category.name == "Market"
    assert result.source == "rule"
    assert result.rule_id == "r1"
    assert result.reason == "rule:migros"
    assert result.confidence == pytest.approx(0.93)


def test_rule_classifier_without_category_in_context_returns_none() -> None:
    matcher = RuleMatcher.compile([make_rule("r1", "migros", "market")])
    classifier = RuleClassifier(matcher)

    result = classifier.classify(
        TransactionText(merchant="MIGROS"),
        ClassificationContext(categories=[]),
    )
    assert result is None


def test_blank_pattern_is_rejected() -> None:
    with pytest.raises(ValueError):
        make_rule("r", "   ")
