import logging

import pytest

from spend_categorizer.core import settings
from spend_categorizer.core.settings import CategorizerConfig


def test_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("ML_CONF_THRESHOLD", "BATCH_LIMIT", "STATISTICAL_ENABLED", "OPENAI_API_KEY", "OPENAI_MODEL"):
        monkeypatch.delenv(key, raising=False)

    config = CategorizerConfig.from_env()

    assert config.threshold == pytest.approx(0.35)
    assert config.batch_limit == 50
    assert config.statistical_enabled is True
    assert config.openai_api_key is None
    assert config.openai_model == "gpt-4o-mini"


def test_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ML_CONF_THRESHOLD", "0.6")
    monkeypatch.setenv("BATCH_LIMIT", "10")
    monkeypatch.setenv("STATISTICAL_ENABLED", "off")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("CENTROID_CACHE_TTL", "60")

    config = CategorizerConfig.from_env()

    assert config.threshold == pytest.approx(0.6)
    assert config.batch_limit == 10
    assert config.statistical_enabled is False
    assert config.openai_api_key == "sk-test"
    assert config.centroid_cache_ttl == pytest.approx(60.0)


@pytest.mark.parametrize(
    ("key", "value"),
    [("ML_CONF_THRESHOLD", "high"), ("ML_CONF_THRESHOLD", "1.5"), ("BATCH_LIMIT", "0")],
)
def test_invalid_values_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch, key: str, value: str) -> None:
    monkeypatch.setenv(key, value)

    config = CategorizerConfig.from_env()

    assert config.threshold == pytest.approx(0.35)
    assert config.batch_limit == 50


def test_read_config_file(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "# comment\n"
        "OPENAI_MODEL: \"gpt-4.1-mini\"\n"
        "ML_CONF_THRESHOLD: 0.5 # tuned\n"
        "EMPTY:\n",
        encoding="utf-8",
    )

    assert settings.read_config_file(str(path)) == {
        "OPENAI_MODEL": "gpt-4.1-mini",
        "ML_CONF_THRESHOLD": "0.5",
    }


def test_sensitive_values_are_masked() -> None:
    assert settings._mask_env_value("OPENAI_API_KEY", "sk-abcdef") == "sk...ef"
    assert settings._mask_env_value("OPENAI_MODEL", "gpt-4o-mini") == "gpt-4o-mini"


def test_log_environment_reports_config_file(monkeypatch: pytest.MonkeyPatch, tmp_path, caplog) -> None:
    (tmp_path / "config.yaml").write_text("UNRELATED: value\n", encoding="utf-8")
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    settings.load_environment()

    with caplog.at_level(logging.INFO, logger="spend_categorizer.core.settings"):
        settings.log_environment()

    assert settings.get_config_path() == str(tmp_path / "config.yaml")
    assert f"[ENV] Config file: {tmp_path / 'config.yaml'}" in caplog.text


def test_log_environment_without_config_file(monkeypatch: pytest.MonkeyPatch, tmp_path, caplog) -> None:
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    settings.load_environment()

    with caplog.at_level(logging.INFO, logger="spend_categorizer.core.settings"):
        settings.log_environment()

    assert "[ENV] Config file: <none>" in caplog.text
