import pytest

from drillrunner import ui


@pytest.fixture(autouse=True)
def _plain_terminal(monkeypatch):
    for name in ("FORCE_COLOR", "TTY_COMPATIBLE", "TTY_INTERACTIVE"):
        monkeypatch.delenv(name, raising=False)


def test_no_emoji_reflects_environment(monkeypatch):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    assert ui.no_emoji() is False
    monkeypatch.setenv("NO_EMOJI", "1")
    assert ui.no_emoji() is True


def test_warn_without_emoji(monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.warn("Compilation failed")
    assert capsys.readouterr().out == "! Compilation failed\n"


def test_warn_with_emoji(monkeypatch, capsys):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    ui.warn("Compilation failed")
    assert capsys.readouterr().out == "⚠️  Compilation failed\n"


def test_success_without_emoji(monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.success("Successfully ran it")
    assert capsys.readouterr().out == "✓ Successfully ran it\n"


def test_success_with_emoji(monkeypatch, capsys):
    monkeypatch.delenv("NO_EMOJI", raising=False)
    ui.success("Successfully ran it")
    assert capsys.readouterr().out == "✅ Successfully ran it\n"


def test_message_is_not_treated_as_markup(monkeypatch, capsys):
    monkeypatch.setenv("NO_EMOJI", "1")
    ui.warn("[bold]literal[/bold] :smile:")
    assert capsys.readouterr().out == "! [bold]literal[/bold] :smile:\n"