"""Tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import SECRET, make_payload_data, sign_data
from yaya_webhook.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def payload_file(tmp_path):
    path = tmp_path / "payload.json"
    path.write_text(json.dumps(make_payload_data()))
    return path


class TestSign:
    def test_sign_prints_canonical_and_signature(self, runner, payload_file):
        result = runner.invoke(cli, ["sign", str(payload_file), "--secret", SECRET])

        assert result.exit_code == 0, result.output
        assert f"Signature: {sign_data(make_payload_data())}" in result.output
        assert "Canonical: 1dd2854e-3a79-4548-ae36-97e4a18ebf81100ETB" in result.output

    def test_sign_reads_secret_from_environment(self, runner, payload_file):
        result = runner.invoke(cli, ["sign", str(payload_file)], env={"WEBHOOK_SECRET": SECRET})

        assert result.exit_code == 0, result.output
        assert sign_data(make_payload_data()) in result.output

    @patch("yaya_webhook.cli.time.time", return_value=1_800_000_000)
    def test_sign_with_current_timestamp(self, mock_time, runner, payload_file):
        result = runner.invoke(cli, ["sign", str(payload_file), "--secret", SECRET, "--now"])

        assert result.exit_code == 0, result.output
        assert "Timestamp: 1800000000" in result.output
        assert sign_data(make_payload_data(timestamp=1_800_000_000)) in result.output

    def test_sign_rejects_invalid_payload(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(make_payload_data(id="nope")))

        result = runner.invoke(cli, ["sign", str(path), "--secret", SECRET])

        assert result.exit_code != 0
        assert "Invalid payload" in result.output

    def test_sign_rejects_non_json(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops")

        result = runner.invoke(cli, ["sign", str(path), "--secret", SECRET])

        assert result.exit_code != 0
        assert "not valid JSON" in result.output


class TestCheckConfig:
    def test_valid_config(self, runner):
        result = runner.invoke(
            cli,
            ["check-config"],
            env={"WEBHOOK_SECRET": "x", "TRUSTED_IPS": "196.188.0.10", "ENVIRONMENT": "development"},
        )

        assert result.exit_code == 0, result.output
        assert "Configuration valid" in result.output

    def test_missing_secret_fails(self, runner, monkeypatch, tmp_path):
        monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
        monkeypatch.chdir(tmp_path)  # no .env

        result = runner.invoke(cli, ["check-config"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_default_secret_in_production_fails(self, runner):
        result = runner.invoke(
            cli,
            ["check-config"],
            env={
                "WEBHOOK_SECRET": "default_secret_change_in_production",
                "ENVIRONMENT": "production",
            },
        )

        assert result.exit_code == 1


class TestServe:
    @patch("uvicorn.run")
    def test_serve_runs_app_factory(self, mock_run, runner):
        with patch("yaya_webhook.cli.get_settings") as mock_get_settings:
            mock_get_settings.return_value.host = "0.0.0.0"
            mock_get_settings.return_value.port = 3000
            mock_get_settings.return_value.log_level = "INFO"
            result = runner.invoke(cli, ["serve", "--port", "8080"])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_run.call_args
        assert args[0] == "yaya_webhook.main:create_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 8080
        assert kwargs["host"] == "0.0.0.0"
