"""Tests for CLI logging setup."""
from quizalloc import cli


def test_configured_level_applies_by_default(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: calls.append(kwargs))

    cli.main_callback(verbose=False)

    # None lets configure_logging fall back to Settings.log_level
    assert calls == [{"level": None}]


def test_verbose_forces_debug(monkeypatch):
    calls = []
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: calls.append(kwargs))

    cli.main_callback(verbose=True)

    assert calls == [{"level": "DEBUG"}]
