"""Tests for the CLI implementation."""

import base64
import json

import pytest
from pytest_httpserver import HTTPServer
from typer.testing import CliRunner
from werkzeug import Request, Response

from hopread.cli import app


class TestCLI:
    """Test the CLI functionality."""

    def setup_method(self):
        self.test_data = bytes(range(256)) * 4  # 1024 bytes
        self.server = HTTPServer(host="127.0.0.1", port=0)
        self.server.expect_request("/webhdfs/v1/file.bin").respond_with_handler(self._redirect)
        self.server.expect_request("/dn/webhdfs/v1/file.bin").respond_with_handler(self._serve)
        self.server.expect_request("/webhdfs/v1/secret.bin").respond_with_data(
            json.dumps({"RemoteException": {"exception": "AccessControlException", "message": "Permission denied"}}),
            status=403, content_type="application/json",
        )
        self.server.start()
        self.base_url = f"http://127.0.0.1:{self.server.port}"

    def teardown_method(self):
        self.server.stop()

    def _redirect(self, request: Request) -> Response:
        offset = request.args.get("offset", "0")
        return Response(status=307, headers={"Location": f"{self.base_url}/dn/webhdfs/v1/file.bin?op=OPEN&offset={offset}"})

    def _serve(self, request: Request) -> Response:
        offset = int(request.args.get("offset", "0"))
        return Response(self.test_data[offset:], status=200)

    @pytest.fixture
    def runner(self):
        """CLI test runner."""
        return CliRunner()

    def test_cat_whole_file(self, runner):
        result = runner.invoke(app, ["cat", self.base_url, "/file.bin"])
        assert result.exit_code == 0
        assert result.stdout_bytes == self.test_data

    def test_cat_range(self, runner):
        result = runner.invoke(app, ["cat", self.base_url, "/file.bin", "--offset", "100", "--length", "50"])
        assert result.exit_code == 0
        assert result.stdout_bytes == self.test_data[100:150]

    def test_cat_to_file(self, runner, tmp_path):
        out = tmp_path / "copy.bin"
        result = runner.invoke(app, ["cat", self.base_url, "/file.bin", "-o", str(out), "--buffer-size", "100"])
        assert result.exit_code == 0
        assert out.read_bytes() == self.test_data

    def test_cat_access_denied(self, runner):
        result = runner.invoke(app, ["cat", self.base_url, "/secret.bin"])
        assert result.exit_code == 1
        assert "Permission denied" in result.output

    def test_probe(self, runner):
        result = runner.invoke(app, ["probe", self.base_url, "/file.bin", "--bytes", "4"])
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["path"] == "/file.bin"
        assert payload["known_length"] == len(self.test_data)
        assert payload["bytes_read"] == 4
        assert payload["exclusions"] == []
        assert payload["resolved_url"].startswith(f"{self.base_url}/dn/webhdfs/v1/file.bin")
        assert "offset" not in payload["resolved_url"]
        assert base64.b64decode(payload["peek"]) == self.test_data[:4]

    def test_probe_error(self, runner):
        result = runner.invoke(app, ["probe", self.base_url, "/secret.bin"])
        assert result.exit_code == 1
        # error report goes to stderr, which output also captures
        payload = json.loads(result.output)
        assert payload["success"] is False
        assert "Permission denied" in payload["error"]

    def test_help(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "cat" in result.stdout
        assert "probe" in result.stdout
