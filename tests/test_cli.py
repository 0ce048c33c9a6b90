"""Tests for the graphgarden command line."""

import json

import pytest

from conftest import protocol_file
from garden_config import load_config
from graphgarden import LOCAL, GardenGraph, main


@pytest.fixture
def self_path(tmp_path):
    path = tmp_path / "graphgarden.json"
    data = protocol_file("https://alice.test/", nodes=[("/", "Home"), ("/about/", "About")],
                         edges=[("/", "/about/", "internal")], friends=[], title="Alice")
    path.write_text(json.dumps(data))
    return path


class TestCli:
    def test_validate_ok(self, self_path, capsys):
        main(["validate", str(self_path)])
        out = capsys.readouterr().out
        assert "valid: Alice (https://alice.test/)" in out
        assert "nodes:   2" in out

    def test_validate_rejects(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"version": "0.1.0"}))
        with pytest.raises(SystemExit) as info:
            main(["validate", str(path)])
        assert info.value.code == 1
        assert "invalid:" in capsys.readouterr().out

    def test_assemble_then_info(self, self_path, tmp_path, capsys):
        output = tmp_path / "graph.json"
        main(["assemble", str(self_path), "--output", str(output)])
        assert "assembled 2 nodes, 1 edges" in capsys.readouterr().out

        graph = GardenGraph.load(str(output))
        assert graph.nodes["https://alice.test/about/"]["provenance"] == LOCAL

        main(["info", str(output)])
        out = capsys.readouterr().out
        assert "graph: https://alice.test/" in out
        assert "local:    2" in out

    def test_no_command_prints_help(self, capsys):
        main([])
        assert "usage" in capsys.readouterr().out

    def test_assemble_save_config(self, self_path, tmp_path):
        output = tmp_path / "graph.json"
        main(["assemble", str(self_path), "--output", str(output), "--timeout", "5", "--save-config"])
        saved = json.loads((tmp_path / "graphgarden.config.json").read_text())
        assert saved == {"fetch": {"timeout": 5.0}}
        assert load_config(str(self_path))["fetch"]["timeout"] == 5.0

    def test_assemble_without_flag_saves_nothing(self, self_path, tmp_path):
        main(["assemble", str(self_path), "--output", str(tmp_path / "graph.json"), "--timeout", "5"])
        assert not (tmp_path / "graphgarden.config.json").exists()
