from collections.abc import Generator
from unittest.mock import MagicMock, patch

import pytest

from spend_categorizer.classifiers.base import ClassificationContext
from spend_categorizer.classifiers.llm import LLMClassifier
from spend_categorizer.models import Category, TransactionText


@pytest.fixture
def mock_openai_client() -> Generator[MagicMock, None, None]:
    with patch("spend_categorizer.classifiers.llm.OpenAI") as mock:
        yield mock


@pytest.fixture
def context() -> ClassificationContext:
    return ClassificationContext(categories=[
        Category(id="1", name="Market"),
        Category(id="2", name="Abonelik"),
    ])


def _respond_with(mock_openai_client: MagicMock, text: str) -> MagicMock:
    mock_instance = mock_openai_client.return_value
    response = MagicMock()
    response.output_text = text
    mock_instance.responses.create.return_value = response
    return mock_instance


def test_llm_classify(mock_openai_client: MagicMock, context: ClassificationContext) -> None:
    mock_instance = _respond_with(mock_openai_client, "  abonelik\n")

    classifier = LLMClassifier(api_key="sk-fake", model="gpt-4o-mini")
    res = classifier.classify(TransactionText(merchant="Netflix", description="monthly"), context)

    assert res is not None
    assert res.category.id == "2"
    assert res.category.name == "Abonelik"
    assert res.source == "ai"
    assert res.confidence == pytest.approx(0.8)
    assert res.reason == "ai:gpt-4o-mini"

    mock_instance.responses.create.assert_called_once()
    prompt = mock_instance.responses.create.call_args.kwargs["input"]
    assert "Market, Abonelik" in prompt
    assert "Netflix" in prompt


def test_llm_confidence_is_configurable(
    mock_openai_client: MagicMock, context: ClassificationContext
) -> None:
    _respond_with(mock_openai_client, "Market")
    classifier = LLMClassifier(api_key="sk-fake", confidence=0.6)

    res = classifier.classify(TransactionText(merchant="Migros"), context)
    assert res is not None
    assert res.confidence == pytest.approx(0.6)


@pytest.mark.parametrize("answer", ["", "Groceries", "Market or Abonelik"])
def test_llm_unmapped_or_empty_answer_is_no_result(
    mock_openai_client: MagicMock, context: ClassificationContext, answer: str
) -> None:
    _respond_with(mock_openai_client, answer)
    classifier = LLMClassifier(api_key="sk-fake")

    assert classifier.classify(TransactionText(merchant="Whole Foods"), context) is None


def test_llm_provider_error_is_swallowed(
    mock_openai_client: MagicMock, context: ClassificationContext
) -> None:
    mock_openai_client.return_value.responses.create.side_effect = RuntimeError("503")
    classifier = LLMClassifier(api_key="sk-fake")

    assert classifier.classify(TransactionText(merchant="Migros"), context) is None


def test_llm_skips_call_without_categories(mock_openai_client: MagicMock) -> None:
    classifier = LLMClassifier(api_key="sk-fake")

    assert classifier.classify(TransactionText(merchant="Migros"), ClassificationContext(categories=[])) is None
    mock_openai_client.return_value.responses.create.assert_not_called()


def test_extract_output_text_from_output_blocks() -> None:
    block = MagicMock(type="output_text", text="Market")
    item = MagicMock(content=[block])
    response = MagicMock(output_text=None, output=[item])

    assert LLMClassifier._extract_output_text(response) == "Market"
