"""Unit tests for the regsearch CLI (search and settings commands)."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from regsearch.exceptions import BrowserFault, CaptchaSolveFailure
from regsearch.models.search import Diagnostics, SearchResult, SearchStatus


@pytest.fixture()
def cli():
    """Return a Typer test CliRunner bound to the main app."""
    from typer.testing import CliRunner

    from regsearch.cli.app import app

    return CliRunner(), app


def _result(**kwargs) -> SearchResult:
    defaults = {
        "term": "Commenda",
        "records": [{"registration_number": "U72900KA2021PTC150000", "entity_name": "COMMENDA INDIA PRIVATE LIMITED"}],
        "final_url": "https://registry.example/search.html",
    }
    defaults.update(kwargs)
    return SearchResult(**defaults)


class TestSearchCommand:
    def test_prints_records(self, cli) -> None:
        runner, app = cli
        with patch("regsearch.search.orchestrator.run_search", return_value=_result()):
            result = runner.invoke(app, ["search", "Commenda"])

        assert result.exit_code == 0
        assert "COMMENDA INDIA PRIVATE LIMITED" in result.output
        assert "1 record(s)" in result.output

    def test_json_output(self, cli) -> None:
        runner, app = cli
        with patch("regsearch.search.orchestrator.run_search", return_value=_result()):
            result = runner.invoke(app, ["search", "Commenda", "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["status"] == "results"
        assert payload["records"][0]["registration_number"] == "U72900KA2021PTC150000"

    def test_empty_result(self, cli) -> None:
        runner, app = cli
        with patch("regsearch.search.orchestrator.run_search", return_value=_result(records=[])):
            result = runner.invoke(app, ["search", "zzqx"])

        assert result.exit_code == 0
        assert "No matching records" in result.output

    def test_rejected_exits_2(self, cli) -> None:
        runner, app = cli
        rejected = _result(records=[], status=SearchStatus.REJECTED, error_text="Invalid captcha")
        with patch("regsearch.search.orchestrator.run_search", return_value=rejected):
            result = runner.invoke(app, ["search", "Commenda"])

        assert result.exit_code == 2
        assert "Invalid captcha" in result.output

    def test_failure_exits_1_with_diagnostics(self, cli) -> None:
        runner, app = cli
        error = CaptchaSolveFailure("I2+7", "unexpected characters")
        error.attach(Diagnostics(url="https://registry.example/search.html", screenshot_path="/tmp/shot.png"))
        with patch("regsearch.search.orchestrator.run_search", side_effect=error):
            result = runner.invoke(app, ["search", "Commenda"])

        assert result.exit_code == 1
        assert "CaptchaSolveFailure" in result.output
        assert "/tmp/shot.png" in result.output

    def test_browser_fault_exits_1(self, cli) -> None:
        runner, app = cli
        error = BrowserFault("Browser error: Target page, context or browser has been closed")
        with patch("regsearch.search.orchestrator.run_search", side_effect=error):
            result = runner.invoke(app, ["search", "Commenda"])

        assert result.exit_code == 1
        assert "BrowserFault" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_flags_become_search_config(self, cli) -> None:
        runner, app = cli
        with patch("regsearch.search.orchestrator.run_search", return_value=_result()) as run:
            runner.invoke(app, ["search", "Commenda", "--headful", "-u", "UA-1", "-u", "UA-2", "-a", "3"])

        term, config, _settings = run.call_args.args
        assert term == "Commenda"
        assert config.headless is False
        assert config.user_agent_pool == frozenset({"UA-1", "UA-2"})
        assert run.call_args.kwargs["max_attempts"] == 3

    def test_attempts_bounded(self, cli) -> None:
        runner, app = cli
        result = runner.invoke(app, ["search", "Commenda", "--attempts", "0"])
        assert result.exit_code != 0


class TestSettingsCommand:
    def test_validate(self, cli) -> None:
        runner, app = cli
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 0
        assert "Settings are valid" in result.output

    def test_show_is_json(self, cli) -> None:
        runner, app = cli
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "captcha" in result.output

    def test_show_single_section(self, cli) -> None:
        runner, app = cli
        result = runner.invoke(app, ["settings", "show", "captcha"])
        assert result.exit_code == 0
        assert "threshold" in result.output
        assert "headless" not in result.output

    def test_show_unknown_section(self, cli) -> None:
        runner, app = cli
        result = runner.invoke(app, ["settings", "show", "nope"])
        assert result.exit_code == 1

    def test_validate_reports_bad_values(self, cli, monkeypatch) -> None:
        runner, app = cli
        monkeypatch.setenv("REGSEARCH_CAPTCHA__THRESHOLD", "300")
        result = runner.invoke(app, ["settings", "validate"])
        assert result.exit_code == 1
        assert "threshold" in result.output


def test_version_flag(cli) -> None:
    runner, app = cli
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("regsearch ")


def test_help_lists_every_config_layer() -> None:
    from regsearch.cli import app as app_module

    chain = app_module.__doc__.split("Config precedence: ", 1)[1].strip()
    assert app_module.APP_HELP.endswith(chain)
    assert "settings.<env>.toml" in app_module.APP_HELP
