"""Tests for the single-tool CLI."""

import json
from unittest.mock import Mock, patch

from pv_agent.core.db import count_rows, get_connection
from pv_agent.tools.__main__ import main


def _run(argv, server=None):
    server = server or Mock()
    with patch("sys.argv", ["pv-agent-tool", *argv]), patch(
        "pv_agent.tools.__main__.build_server", return_value=server
    ), patch("pv_agent.tools.__main__.configure_logging"):
        return main(), server


class TestToolCli:
    """Argument handling and exit codes."""

    def test_call_prints_result(self, capsys):
        server = Mock()
        server.call.return_value = {"success": True, "data": {"totalDrugs": 3}}

        code, _ = _run(["get_statistics", "--params", "{}"], server)

        assert code == 0
        assert json.loads(capsys.readouterr().out)["data"] == {"totalDrugs": 3}
        server.call.assert_called_once_with("get_statistics", {})
        server.agent.shutdown.assert_called_once_with(wait=True)

    def test_failed_call_exits_nonzero(self):
        server = Mock()
        server.call.return_value = {"success": False, "error": "Unknown tool: x"}

        code, _ = _run(["x"], server)

        assert code == 1

    def test_params_file(self, tmp_path):
        params_file = tmp_path / "request.json"
        params_file.write_text('{"patientId": "P001"}', encoding="utf-8")
        server = Mock()
        server.call.return_value = {"success": True}

        _run(["get_patient_info", "--params-file", str(params_file)], server)

        server.call.assert_called_once_with("get_patient_info", {"patientId": "P001"})

    def test_list(self, capsys):
        server = Mock()
        server.list_tools.return_value = [{"name": "get_statistics"}]

        code, _ = _run(["--list"], server)

        assert code == 0
        assert json.loads(capsys.readouterr().out) == [{"name": "get_statistics"}]

    def test_init_and_seed_without_tool(self, tmp_path):
        db_path = tmp_path / "cli.db"

        code, server = _run(["--db", str(db_path), "--seed"])

        assert code == 0
        server.call.assert_not_called()
        conn = get_connection(db_path)
        try:
            assert count_rows(conn, "patients") == 2
        finally:
            conn.close()
