from __future__ import annotations

import pytest

from treefetch import DispatchConfig, ServiceSettings
from treefetch.config import DEFAULT_TARGET_TEMPLATE


def test_dispatch_config_defaults():
    config = DispatchConfig()

    assert config.branching_factor == 10
    assert config.base_case_threshold == 60
    assert config.max_retries == 10
    assert config.effective_overload_threshold == 4
    assert config.windowing_enabled is False


def test_explicit_overload_threshold_wins():
    assert DispatchConfig(overload_threshold=3).effective_overload_threshold == 3


def test_from_env_reads_prefixed_variables(monkeypatch):
    monkeypatch.setenv("TREEFETCH_BRANCHING_FACTOR", "4")
    monkeypatch.setenv("TREEFETCH_BASE_CASE_THRESHOLD", "25")
    monkeypatch.setenv("TREEFETCH_MAX_BACKOFF_S", "2.5")
    monkeypatch.setenv("TREEFETCH_ITEMS_PER_WINDOW", " 100 ")
    monkeypatch.setenv("TREEFETCH_COALESCE_DUPLICATES", "false")
    monkeypatch.setenv("TREEFETCH_OVERLOAD_THRESHOLD", "")

    config = DispatchConfig.from_env()

    assert config.branching_factor == 4
    assert config.base_case_threshold == 25
    assert config.max_backoff_s == 2.5
    assert config.items_per_window == 100
    assert config.windowing_enabled is True
    assert config.coalesce_duplicates is False
    assert config.overload_threshold is None


def test_from_env_rejects_invalid_values(monkeypatch):
    monkeypatch.setenv("TREEFETCH_BRANCHING_FACTOR", "1")
    with pytest.raises(ValueError, match="branching_factor"):
        DispatchConfig.from_env()


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("branching_factor", 1),
        ("base_case_threshold", 0),
        ("max_retries", 0),
        ("initial_backoff_s", -0.1),
        ("max_backoff_s", -1.0),
        ("jitter_max_s", -0.01),
        ("overload_multiplier", 0.5),
        ("window_s", -1.0),
        ("items_per_window", -5),
        ("body_excerpt_chars", -1),
    ],
)
def test_validate_rejects_out_of_range(field, value):
    with pytest.raises(ValueError, match=field):
        DispatchConfig(**{field: value}).validate()


def test_with_overrides_skips_none_and_validates():
    base = DispatchConfig()

    updated = base.with_overrides(branching_factor=3, items_per_window=None)

    assert updated.branching_factor == 3
    assert updated.items_per_window is None
    assert base.branching_factor == 10
    with pytest.raises(ValueError):
        base.with_overrides(max_retries=0)


def test_payload_round_trip_ignores_unknown_keys():
    config = DispatchConfig(branching_factor=5, items_per_window=7)
    payload = config.as_payload()
    payload["unknown"] = "ignored"

    assert DispatchConfig.from_payload(payload) == config
    assert DispatchConfig.from_payload(None) == DispatchConfig()


def test_service_settings_ceiling_depends_on_secret():
    settings = ServiceSettings(secret="s3", public_max_targets=10, secret_max_targets=100)

    assert settings.max_targets_for(None) == 10
    assert settings.max_targets_for("wrong") == 10
    assert settings.max_targets_for("s3") == 100
    assert ServiceSettings().max_targets_for("") == 9000


def test_service_settings_from_env(monkeypatch):
    monkeypatch.setenv("TREEFETCH_SECRET", "hunter2")
    monkeypatch.setenv("TREEFETCH_PUBLIC_MAX_TARGETS", "50")
    monkeypatch.setenv("TREEFETCH_SELF_URL", "http://worker.internal")
    monkeypatch.delenv("TREEFETCH_TARGET_TEMPLATE", raising=False)
    monkeypatch.delenv("TREEFETCH_PORT", raising=False)

    settings = ServiceSettings.from_env()

    assert settings.secret == "hunter2"
    assert settings.public_max_targets == 50
    assert settings.self_url == "http://worker.internal"
    assert settings.target_template == DEFAULT_TARGET_TEMPLATE
    assert settings.port == 8787
