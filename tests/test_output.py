"""Tests for output formatting utilities."""

import json

import yaml

from stackctl.core.output import (
    OutputFormat,
    OutputFormatter,
    format_bytes,
    format_duration,
)


class TestFormatBytes:
    """Tests for format_bytes utility."""

    def test_bytes(self):
        assert format_bytes(500) == "500.0 B"

    def test_kilobytes(self):
        assert format_bytes(1024) == "1.0 KB"
        assert format_bytes(1536) == "1.5 KB"

    def test_gigabytes(self):
        assert format_bytes(1024**3) == "1.0 GB"
        assert format_bytes(10 * 1024**3) == "10.0 GB"

    def test_zero(self):
        assert format_bytes(0) == "0.0 B"


class TestFormatDuration:
    """Tests for format_duration utility."""

    def test_seconds(self):
        assert format_duration(0) == "0.0s"
        assert format_duration(59.9) == "59.9s"

    def test_minutes(self):
        assert format_duration(60) == "1.0m"
        assert format_duration(90) == "1.5m"

    def test_hours(self):
        assert format_duration(3600) == "1.0h"
        assert format_duration(86400) == "24.0h"


class TestOutputFormatter:
    """Tests for OutputFormatter class."""

    def test_quiet_mode_suppresses_output(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print("test message")
        formatter.print_plain("plain message")
        formatter.print_warning("warning message")
        formatter.print_success("success message")
        captured = capsys.readouterr()
        assert captured.out == ""

    def test_error_always_prints(self, capsys):
        formatter = OutputFormatter(quiet=True, color=False)
        formatter.print_error("error message")
        captured = capsys.readouterr()
        assert "error message" in captured.err

    def test_print_plain_keeps_brackets(self, capsys):
        formatter = OutputFormatter(color=False)
        formatter.print_plain("mysql   [healthy]   0.0.0.0:3306->3306/tcp")
        captured = capsys.readouterr()
        assert "[healthy]" in captured.out

    def test_table_output(self, capsys):
        formatter = OutputFormatter(color=False)
        formatter.print_data(
            [{"name": "Grafana", "url": "http://localhost:3000"}],
            title="Available services",
        )
        captured = capsys.readouterr()
        assert "Available services" in captured.out
        assert "Grafana" in captured.out

    def test_empty_table(self, capsys):
        formatter = OutputFormatter(color=False)
        formatter.print_data([])
        assert "No data to display" in capsys.readouterr().out

    def test_json_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.JSON, color=False)
        data = [{"step": "build_images", "action": "run"}]
        formatter.print_data(data)
        captured = capsys.readouterr()
        assert json.loads(captured.out) == data

    def test_yaml_output(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.YAML, color=False)
        data = {"name": "test", "value": 123}
        formatter.print_data(data)
        captured = capsys.readouterr()
        assert yaml.safe_load(captured.out) == data

    def test_raw_output_dict(self, capsys):
        formatter = OutputFormatter(format=OutputFormat.RAW, color=False)
        formatter.print_data({"name": "test", "value": 123})
        captured = capsys.readouterr()
        assert "name: test" in captured.out
        assert "value: 123" in captured.out


class TestOutputFormat:
    """Tests for OutputFormat enum."""

    def test_values(self):
        assert OutputFormat.TABLE.value == "table"
        assert OutputFormat.JSON.value == "json"
        assert OutputFormat.YAML.value == "yaml"
        assert OutputFormat.RAW.value == "raw"

    def test_string_comparison(self):
        assert OutputFormat.TABLE == "table"
