"""Tests for the command-line entry point."""

import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import patch

import pytest

from ratecast import LoadTestSummary, NoResultsError
from ratecast._cli import EXIT_CONFIG_ERROR, EXIT_NO_RESULTS, EXIT_OK, main, parse_args


class _StatusHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"
    count = 0
    lock = threading.Lock()

    def do_GET(self):
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        with self.lock:
            type(self).count += 1
            status = 500 if type(self).count % 4 == 0 else 200
        self.send_response(status)
        self.send_header("Content-Length", "2")
        self.end_headers()
        self.wfile.write(b"ok")

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server_address():
    _StatusHandler.count = 0
    server = ThreadingHTTPServer(("127.0.0.1", 0), _StatusHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address
    yield f"{host}:{port}"
    server.shutdown()
    server.server_close()


class TestParseArgs:
    """Tests for argument parsing."""

    def test_short_flags(self):
        args = parse_args(["-r", "10", "-t", "100", "localhost:8080"])

        assert args.rate == 10
        assert args.total == 100
        assert args.address == "localhost:8080"
        assert args.request_timeout is None
        assert args.drain_timeout is None
        assert args.max_workers is None
        assert args.verbose == 0

    def test_long_flags(self):
        args = parse_args([
            "--rate", "5", "--total", "50", "--timeout", "2.5",
            "--drain-timeout", "4", "--workers", "12", "-vv", "h:1",
        ])

        assert args.request_timeout == 2.5
        assert args.drain_timeout == 4.0
        assert args.max_workers == 12
        assert args.verbose == 2

    def test_missing_rate_exits(self):
        with pytest.raises(SystemExit):
            parse_args(["-t", "1", "localhost:8080"])


class TestMainConfigErrors:
    """Configuration errors exit non-zero before any dispatch."""

    def test_invalid_port(self, capsys):
        with patch("ratecast._cli.LoadGenerator") as generator:
            code = main(["-r", "1", "-t", "1", "localhost:port"])

        assert code == EXIT_CONFIG_ERROR
        assert "port is an invalid port!" in capsys.readouterr().err
        generator.assert_not_called()

    def test_zero_rate(self, capsys):
        with patch("ratecast._cli.LoadGenerator") as generator:
            code = main(["-r", "0", "-t", "10", "localhost:8080"])

        assert code == EXIT_CONFIG_ERROR
        assert "'rate'" in capsys.readouterr().err
        generator.assert_not_called()

    @patch.dict(os.environ, {"RATECAST_WAVE_INTERVAL": "fast"})
    def test_invalid_env_var(self, capsys):
        code = main(["-r", "1", "-t", "1", "localhost:8080"])

        assert code == EXIT_CONFIG_ERROR
        assert "RATECAST_WAVE_INTERVAL" in capsys.readouterr().err


class TestMainWithMockedGenerator:
    """Tests for main() wiring with LoadGenerator mocked out."""

    def test_prints_summary(self, capsys):
        summary = LoadTestSummary(
            success_rate_percent=99.5,
            median_duration_us=1_250_000,
            sample_count=200,
            server_errors=1,
        )
        with patch("ratecast._cli.LoadGenerator") as generator:
            generator.return_value.run_and_aggregate.return_value = summary
            code = main(["-r", "10", "-t", "200", "localhost:8080"])

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert "Rate is 10" in out
        assert "Total is 200" in out
        assert "Address is localhost:8080" in out
        assert "success: 99.50 %" in out
        assert "median: 1.25s" in out

    def test_cli_flags_override_env_vars(self):
        with patch.dict(os.environ, {"RATECAST_REQUEST_TIMEOUT": "9"}), \
                patch("ratecast._cli.LoadGenerator") as generator:
            generator.return_value.run_and_aggregate.return_value = LoadTestSummary(100.0, 1, 1, 0)
            main(["-r", "1", "-t", "1", "--timeout", "2", "localhost:8080"])

        params, config = generator.call_args.args
        assert params.rate == 1
        assert config.request_timeout == 2.0

    def test_no_results_exits_non_zero(self, capsys):
        with patch("ratecast._cli.LoadGenerator") as generator:
            generator.return_value.run_and_aggregate.side_effect = NoResultsError()
            code = main(["-r", "1", "-t", "1", "localhost:8080"])

        assert code == EXIT_NO_RESULTS
        assert "No results are available" in capsys.readouterr().err


class TestMainEndToEnd:
    """Full runs against a local HTTP server."""

    def test_reports_success_rate_and_median(self, server_address, capsys):
        with patch.dict(os.environ, {"RATECAST_WAVE_INTERVAL": "0.05"}):
            code = main(["-r", "4", "-t", "8", "--drain-timeout", "10", server_address])

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert _StatusHandler.count == 8
        assert "success: 75.00 %" in out
        assert "median: " in out

    def test_unreachable_target_exits_with_no_results(self, capsys):
        with patch.dict(os.environ, {"RATECAST_WAVE_INTERVAL": "0.05"}):
            code = main(["-r", "2", "-t", "2", "--timeout", "1", "--drain-timeout", "5", "127.0.0.1:1"])

        assert code == EXIT_NO_RESULTS
        assert "No results are available" in capsys.readouterr().err
