"""Tests for the config dict helpers."""

import json

from garden_config import DEFAULTS, load_config, resolve_config, save_config, with_overrides


class TestConfig:
    def test_defaults_without_file(self):
        assert load_config() == DEFAULTS
        assert load_config() is not DEFAULTS

    def test_missing_config_file_gives_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "self.json")) == DEFAULTS

    def test_save_stores_only_differences(self, tmp_path):
        path = str(tmp_path / "self.json")
        save_config(path, with_overrides(load_config(), {"fetch": {"timeout": 5}}))

        saved = json.loads((tmp_path / "self.config.json").read_text())
        assert saved == {"fetch": {"timeout": 5}}

        cfg = load_config(path)
        assert cfg["fetch"]["timeout"] == 5
        assert cfg["fetch"]["concurrent"] == DEFAULTS["fetch"]["concurrent"]

    def test_saving_defaults_removes_file(self, tmp_path):
        path = str(tmp_path / "self.json")
        (tmp_path / "self.config.json").write_text('{"fetch": {"timeout": 5}}')
        save_config(path, load_config())
        assert not (tmp_path / "self.config.json").exists()

    def test_corrupt_file_falls_back(self, tmp_path):
        (tmp_path / "self.config.json").write_text("{nope")
        assert load_config(str(tmp_path / "self.json")) == DEFAULTS

    def test_with_overrides_leaves_original(self):
        cfg = load_config()
        changed = with_overrides(cfg, {"server": {"port": 9000}})
        assert changed["server"]["port"] == 9000
        assert cfg["server"]["port"] == DEFAULTS["server"]["port"]

    def test_resolve_partial_config(self):
        cfg = resolve_config({"fetch": {"timeout": 1}})
        assert cfg["fetch"]["timeout"] == 1
        assert cfg["fetch"]["well_known_path"] == "/.well-known/graphgarden.json"
        assert resolve_config() == DEFAULTS
