"""Tests for the credential status CLI (scripts/check_credentials.py)."""

import json

import pytest

from scripts.check_credentials import main


def run(monkeypatch, *args) -> int:
    monkeypatch.setattr("sys.argv", ["check_credentials", *args])
    with pytest.raises(SystemExit) as exc_info:
        main()
    return exc_info.value.code


class TestCheckCredentials:
    def test_missing_providers_fail(self, monkeypatch, capsys):
        assert run(monkeypatch) == 1

        output = capsys.readouterr().out
        assert "maps       MISSING     (GOOGLE_MAPS_API_KEY)" in output
        assert "news       not set     (NEWS_API_KEY, optional)" in output

    def test_everything_configured_passes(self, monkeypatch, capsys, maps_key, serp_key, google_oauth):
        assert run(monkeypatch) == 0

        assert "MISSING" not in capsys.readouterr().out

    def test_json_output(self, monkeypatch, capsys, serp_key):
        assert run(monkeypatch, "--json") == 1

        report = json.loads(capsys.readouterr().out)
        assert report["providers"]["finance"] is True
        assert report["providers"]["gmail"] is False
        assert "calendars" not in report

    def test_calendar_probe_without_oauth_reports_fallback(self, monkeypatch, capsys, fake_google):
        service = fake_google()

        assert run(monkeypatch, "--json", "--probe-calendar") == 1

        assert json.loads(capsys.readouterr().out)["calendars"] is None
        assert service.calls == []
