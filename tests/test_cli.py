"""Tests for the drugcrawl CLI.

The scans themselves are patched out; these tests cover option handling,
sink selection and the exit code on a fatal error.
"""

import dataclasses
import json
import sqlite3

import pytest
from typer.testing import CliRunner

from cli.main import app
from drugcrawl.config import VERSION, settings
from drugcrawl.errors import FetchError
from drugcrawl.scraper.models import TreeNode

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_settings(monkeypatch, tmp_path):
    """The CLI callback writes its flags into the settings singleton; undo that."""
    for f in dataclasses.fields(settings):
        monkeypatch.setattr(settings, f.name, getattr(settings, f.name))
    monkeypatch.setattr(settings, "workspace_dir", tmp_path)
    monkeypatch.setattr(settings, "prod", False)
    monkeypatch.setattr(settings, "db_file", "")


def _small_tree(cfg) -> TreeNode:
    root = TreeNode(name=cfg.atc_root_name, link=cfg.atc_url)
    leaf = TreeNode(name="A", link=cfg.atc_url + "A/")
    leaf.set_children([])
    root.set_children([leaf])
    return root


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"drugcrawl {VERSION}" in result.output


def test_drugs_debug_mode_writes_csv(monkeypatch, tmp_path):
    seen = {}

    def fake_scan(cfg, sink, ctx):
        seen["workers"] = cfg.workers
        seen["sink"] = type(sink).__name__
        return 5

    monkeypatch.setattr("cli.main.scan_drugs", fake_scan)
    csv_path = tmp_path / "out.csv"

    result = runner.invoke(app, ["--workers", "7", "--csvfile", str(csv_path), "drugs"])

    assert result.exit_code == 0, result.output
    assert "[drugs] Saved 5 drugs" in result.output
    assert seen == {"workers": 7, "sink": "CsvSink"}
    assert csv_path.read_text(encoding="utf-8").startswith("Name,Link,Dosage")


def test_drugs_prod_mode_uses_database(monkeypatch, tmp_path):
    seen = {}

    def fake_scan(cfg, sink, ctx):
        seen["sink"] = type(sink).__name__
        return 0

    monkeypatch.setattr("cli.main.scan_drugs", fake_scan)
    db_path = tmp_path / "prod.db"

    result = runner.invoke(app, ["--prod", "--db-path", str(db_path), "drugs"])

    assert result.exit_code == 0, result.output
    assert seen == {"sink": "SqliteSink"}
    assert db_path.exists()


def test_atctree_prod_mode_stores_tree(monkeypatch, tmp_path):
    def fake_scan(cfg, sink, ctx):
        root = _small_tree(cfg)
        sink.write(root)
        return root

    monkeypatch.setattr("cli.main.scan_atc_tree", fake_scan)
    db_path = tmp_path / "prod.db"

    result = runner.invoke(app, ["--prod", "--db-path", str(db_path), "atctree"])

    assert result.exit_code == 0, result.output
    assert "[atctree] Saved 2 categories" in result.output
    conn = sqlite3.connect(db_path)
    stored = json.loads(conn.execute("SELECT tree FROM atc_tree").fetchone()[0])
    conn.close()
    assert stored["children"] == [{"name": "A", "children": []}]


def test_atctree_debug_mode_writes_json(monkeypatch, tmp_path):
    def fake_scan(cfg, sink, ctx):
        root = _small_tree(cfg)
        sink.write(root)
        return root

    monkeypatch.setattr("cli.main.scan_atc_tree", fake_scan)
    json_path = tmp_path / "tree.json"

    result = runner.invoke(app, ["--jsonfile", str(json_path), "atctree"])

    assert result.exit_code == 0, result.output
    assert json.loads(json_path.read_text(encoding="utf-8"))["name"] == settings.atc_root_name


def test_atctree_fetch_failure_exits_non_zero(monkeypatch, tmp_path):
    def failing_scan(cfg, sink, ctx):
        raise FetchError(cfg.atc_url, RuntimeError("connection reset"))

    monkeypatch.setattr("cli.main.scan_atc_tree", failing_scan)

    result = runner.invoke(app, ["--jsonfile", str(tmp_path / "tree.json"), "atctree"])

    assert result.exit_code == 1
    assert "[atctree] Error: HTTP request" in result.output
    assert "connection reset" in result.output


def test_unwritable_output_is_reported(tmp_path):
    result = runner.invoke(app, ["--csvfile", str(tmp_path / "no" / "such" / "out.csv"), "drugs"])
    assert result.exit_code == 1
    assert "[drugs] Error: Cannot open" in result.output


def test_db_init_creates_tables(tmp_path):
    db_path = tmp_path / "nested" / "drugs.db"

    result = runner.invoke(app, ["--db-path", str(db_path), "db", "init"])

    assert result.exit_code == 0, result.output
    assert "Database ready" in result.output
    conn = sqlite3.connect(db_path)
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    conn.close()
    assert {"drugs", "atc_tree"} <= tables
