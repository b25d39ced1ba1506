"""Tests for settings loading and the command-line entry point."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

import main
from license_verifier.config import Settings, get_settings
from license_verifier.models import RunReport, RunStatus


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.delay_lower_bound_ms == 500
        assert settings.delay_upper_bound_ms == 1000
        assert settings.backoff_initial_delay_seconds == 30
        assert settings.backoff_max_delay_seconds == 3600
        assert settings.expiry_sentinel is None
        assert settings.verify_server_certificate is False

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LICENSE_VERIFIER_ENDPOINT_URL", "https://registry.example/ws")
        monkeypatch.setenv("LICENSE_VERIFIER_DELAY_UPPER_BOUND_MS", "2500")
        monkeypatch.setenv("LICENSE_VERIFIER_EXPIRY_SENTINEL", "9999-12-31")
        settings = Settings(_env_file=None)
        assert settings.endpoint_url == "https://registry.example/ws"
        assert settings.delay_upper_bound_ms == 2500
        assert settings.expiry_sentinel == date(9999, 12, 31)

    def test_inverted_delay_window_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, delay_lower_bound_ms=2000, delay_upper_bound_ms=1000)

    def test_multi_character_output_delimiter_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, output_delimiter=";;")

    def test_resolve_relative_and_absolute(self, tmp_path):
        settings = Settings(_env_file=None, working_directory=tmp_path)
        assert settings.resolve("in.csv") == tmp_path / "in.csv"
        assert settings.resolve(tmp_path / "x.csv") == tmp_path / "x.csv"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestCli:
    def test_parse_args(self):
        args = main.parse_args(["drivers.csv", "-o", "report.csv", "--log-level", "DEBUG"])
        assert (args.input, args.output, args.log_level) == ("drivers.csv", "report.csv", "DEBUG")

    def test_default_output_path(self):
        assert main.default_output_path(Path("/data/drivers.csv")) == Path("/data/drivers_results.csv")

    def test_missing_certificate_is_no_input(self, tmp_path):
        settings = Settings(
            _env_file=None,
            working_directory=tmp_path,
            endpoint_url="https://registry.example/ws",
            client_cert_path=tmp_path / "missing.pem",
        )
        args = main.parse_args(["drivers.csv"])
        assert main.run(args, settings) == RunStatus.NO_INPUT

    def test_summary_returns_exit_status(self, capsys):
        report = RunReport(status=RunStatus.REGISTRY_FAULT, requests_total=3, rows_written=2)
        assert main.print_summary(report) == -1
        assert "REGISTRY_FAULT" in capsys.readouterr().out
