"""CLI tests: commands run against a fake document, no engine involved."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any

import pytest
from typer.testing import CliRunner

from qixclient.cli import commands
from qixclient.cli.command_groups import config_commands, engine_commands
from qixclient.cli.shared import engine_utils, logging_utils
from qixclient.config.access import clear_config_cache
from qixclient.utils.exceptions import EngineError, NetworkError

runner = CliRunner()


class _FakeDocument:
    def __init__(self) -> None:
        self.selected: list[tuple[str, list[Any], bool]] = []
        self.data_kwargs: dict[str, Any] = {}

    async def list_sheets(self) -> list[dict[str, Any]]:
        return [{"id": "s1", "title": "Overview", "raw": {}}, {"id": "s2", "title": "Details", "raw": {}}]

    async def list_objects(self, sheet_id: str) -> list[dict[str, Any]]:
        return [{"id": "c1", "type": "barchart", "raw": {}}]

    async def describe_object(self, object_id: str) -> dict[str, Any]:
        return {"object_id": object_id, "object_type": "table", "raw": {"qInfo": {"qId": object_id}}}

    async def get_hypercube_data(self, object_id: str, **kwargs: Any) -> Any:
        self.data_kwargs = kwargs
        if kwargs.get("raw"):
            return [[{"qText": "North", "qNum": "NaN"}]]
        return {
            "headers": ["Region", "Sales"],
            "rows": [{"text": ["North", "10"], "values": ["North", 10]}],
            "total_rows": 1,
            "truncated": True,
        }

    async def evaluate(self, expression: str) -> Any:
        return 1234.5

    async def select_values(self, field: str, values: list[Any], *, toggle: bool = False) -> bool:
        self.selected.append((field, values, toggle))
        return True


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ("QLIK_API_KEY", "QLIK_TENANT_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(engine_utils, "ensure_rotating_log_file", lambda name, level="INFO": tmp_path / f"{name}.log")
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"apiKey": "secret-api-key-1234", "tenantUrl": "https://tenant.example.com"}))
    clear_config_cache()
    yield path
    clear_config_cache()


@pytest.fixture
def fake_doc(monkeypatch):
    doc = _FakeDocument()
    opened: list[str] = []

    @asynccontextmanager
    async def _fake_open(document_id, config, **kwargs):
        opened.append(document_id)
        yield doc

    monkeypatch.setattr(engine_commands, "open_document", _fake_open)
    doc.opened = opened
    return doc


def _invoke(config_file, *args: str):
    return runner.invoke(commands.app, ["--config", str(config_file), *args])


def test_version() -> None:
    result = runner.invoke(commands.app, ["--version"])
    assert result.exit_code == 0
    assert "qixclient v" in result.stdout


def test_sheets_table(config_file, fake_doc) -> None:
    result = _invoke(config_file, "sheets", "app-1")
    assert result.exit_code == 0, result.stdout
    assert "Overview" in result.stdout
    assert "Details" in result.stdout
    assert "2 sheet(s)" in result.stdout
    assert fake_doc.opened == ["app-1"]


def test_sheets_json(config_file, fake_doc) -> None:
    result = _invoke(config_file, "sheets", "app-1", "--json")
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout) == [{"id": "s1", "title": "Overview"}, {"id": "s2", "title": "Details"}]


def test_objects(config_file, fake_doc) -> None:
    result = _invoke(config_file, "objects", "app-1", "s1")
    assert result.exit_code == 0, result.stdout
    assert "barchart" in result.stdout


def test_layout_prints_json(config_file, fake_doc) -> None:
    result = _invoke(config_file, "layout", "app-1", "t1")
    assert result.exit_code == 0, result.stdout
    assert '"qId": "t1"' in result.stdout


def test_data_table_reports_truncation(config_file, fake_doc) -> None:
    result = _invoke(config_file, "data", "app-1", "t1", "--max-rows", "5", "--page-size", "2")
    assert result.exit_code == 0, result.stdout
    assert "Region" in result.stdout
    assert "North" in result.stdout
    assert "truncated" in result.stdout
    assert fake_doc.data_kwargs == {"page_size": 2, "max_rows": 5, "raw": False}


def test_data_raw(config_file, fake_doc) -> None:
    result = _invoke(config_file, "data", "app-1", "t1", "--raw")
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout) == [[{"qText": "North", "qNum": "NaN"}]]


def test_eval(config_file, fake_doc) -> None:
    result = _invoke(config_file, "eval", "app-1", "Sum(Sales)")
    assert result.exit_code == 0, result.stdout
    assert "1234.5" in result.stdout


def test_select_numeric(config_file, fake_doc) -> None:
    result = _invoke(config_file, "select", "app-1", "Year", "2024", "2025", "--numeric")
    assert result.exit_code == 0, result.stdout
    assert fake_doc.selected == [("Year", [2024, 2025], False)]
    assert "Selected 2 value(s)" in result.stdout


def test_select_text(config_file, fake_doc) -> None:
    result = _invoke(config_file, "select", "app-1", "Region", "North", "--toggle")
    assert result.exit_code == 0, result.stdout
    assert fake_doc.selected == [("Region", ["North"], True)]


def test_network_failure_exits_with_code(config_file, monkeypatch) -> None:
    @asynccontextmanager
    async def _failing_open(document_id, config, **kwargs):
        raise NetworkError("Connection failed: refused")
        yield

    monkeypatch.setattr(engine_commands, "open_document", _failing_open)
    result = _invoke(config_file, "sheets", "app-1")
    assert result.exit_code == 1
    assert "NETWORK_ERROR: Connection failed: refused" in result.stdout


def test_engine_error_exits_with_code(config_file, monkeypatch) -> None:
    @asynccontextmanager
    async def _rejecting_open(document_id, config, **kwargs):
        raise EngineError("OpenDoc", 1002, "App not found")
        yield

    monkeypatch.setattr(engine_commands, "open_document", _rejecting_open)
    result = _invoke(config_file, "eval", "app-1", "1")
    assert result.exit_code == 1
    assert "ENGINE_ERROR" in result.stdout


def test_missing_api_key_is_configuration_error(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("QLIK_API_KEY", raising=False)
    monkeypatch.setattr(engine_utils, "ensure_rotating_log_file", lambda name, level="INFO": tmp_path / "x.log")
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tenantUrl": "https://tenant.example.com"}))
    clear_config_cache()

    result = runner.invoke(commands.app, ["--config", str(path), "sheets", "app-1"])
    assert result.exit_code == 1
    assert "CONFIGURATION_ERROR: API key is required" in result.stdout


def test_config_show_masks_key(config_file) -> None:
    result = _invoke(config_file, "config-show")
    assert result.exit_code == 0, result.stdout
    assert "secret-api-key-1234" not in result.stdout
    assert "1234" in result.stdout
    assert "https://tenant.example.com" in result.stdout


def test_config_init_writes_file(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("QLIK_API_KEY", raising=False)
    monkeypatch.delenv("QLIK_TENANT_URL", raising=False)
    path = tmp_path / "config.json"
    clear_config_cache()
    result = runner.invoke(
        commands.app,
        ["--config", str(path), "config-init", "--api-key", "k-123", "--tenant-url", "https://t.example.com"],
    )
    assert result.exit_code == 0, result.stdout
    on_disk = json.loads(path.read_text())
    assert on_disk["apiKey"] == "k-123"
    assert on_disk["tenantUrl"] == "https://t.example.com"


def test_config_init_rejects_bad_url(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("QLIK_TENANT_URL", raising=False)
    path = tmp_path / "config.json"
    clear_config_cache()
    result = runner.invoke(
        commands.app,
        ["--config", str(path), "config-init", "--api-key", "k", "--tenant-url", "ftp://t.example.com"],
    )
    assert result.exit_code == 1
    assert "CONFIGURATION_ERROR" in result.stdout
    assert not path.exists()


def test_mask_secret() -> None:
    assert config_commands.mask_secret("") == ""
    assert config_commands.mask_secret("short") == "*****"
    assert config_commands.mask_secret("abcdefghijkl") == "********ijkl"


def test_rotating_log_file_added_once(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "get_data_dir", lambda: tmp_path)
    logging_utils.configure_cli_logging(False)
    first = logging_utils.ensure_rotating_log_file("sheets")
    second = logging_utils.ensure_rotating_log_file("sheets")
    assert first == second == tmp_path / "logs" / "sheets.log"
    assert list(logging_utils._SINK_IDS) == ["sheets"]
    logging_utils.configure_cli_logging(False)
    assert logging_utils._SINK_IDS == {}
