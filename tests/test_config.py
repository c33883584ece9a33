import json

import pytest

from Chord_Scope.config import Config, ConfigError, SimulationConfig, load_config


def test_load_json_overrides_and_merges_simulation(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"ws_port": 4000, "simulation": {"nodes": 12}}))
    Config.load_from_file(str(cfg))
    assert Config.ws_port == 4000
    assert Config.simulation["nodes"] == 12
    # untouched nested keys survive the merge
    assert Config.simulation["poll_rate"] == 200
    assert Config.config_file == str(cfg)


def test_load_yaml(tmp_path):
    cfg = tmp_path / "scope.yaml"
    cfg.write_text("path_length_source: events\nhistory_limit: 8\n")
    values = load_config(str(cfg))
    assert Config.path_length_source == "events"
    assert values["history_limit"] == 8


def test_unknown_keys_are_ignored(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"not_a_setting": 1, "validate": 3}))
    Config.load_from_file(str(cfg))
    assert not hasattr(Config, "not_a_setting")
    assert callable(Config.validate)


def test_invalid_values_raise(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text(json.dumps({"path_length_source": "both"}))
    with pytest.raises(ConfigError):
        Config.load_from_file(str(cfg))


def test_out_of_range_simulation_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("simulation:\n  nodes: 51\n")
    with pytest.raises(ConfigError, match="nodes=51"):
        Config.load_from_file(str(cfg))


def test_unparseable_file(tmp_path):
    cfg = tmp_path / "config.json"
    cfg.write_text("{not json")
    with pytest.raises(ConfigError):
        Config.load_from_file(str(cfg))


def test_non_mapping_file(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigError):
        Config.load_from_file(str(cfg))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load_from_file(str(tmp_path / "absent.json"))


def test_simulation_config_limits():
    assert SimulationConfig().validate() == []
    errors = SimulationConfig(nodes=0, get_affinity=101, poll_rate=5).validate()
    assert len(errors) == 3
    assert SimulationConfig(nodes=True).validate()


def test_simulation_config_from_dict_rejects_unknown_keys():
    with pytest.raises(ConfigError):
        SimulationConfig.from_dict({"nodes": 3, "speed": 2})
    assert SimulationConfig.from_dict({"nodes": 3}).nodes == 3


def test_failed_load_leaves_config_untouched(tmp_path):
    before = Config.defaults()
    cfg = tmp_path / "config.json"
    cfg.write_text(
        json.dumps({"ws_port": 4000, "pending_timeout": -1, "simulation": {"nodes": 4}})
    )
    with pytest.raises(ConfigError, match="pending_timeout"):
        Config.load_from_file(str(cfg))
    assert Config.defaults() == before
    assert Config.ws_port == 3000
    assert Config.simulation["nodes"] == 10
    assert Config.config_file is None


def test_wrongly_typed_value_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("pending_timeout: soon\n")
    with pytest.raises(ConfigError):
        Config.load_from_file(str(cfg))
    assert Config.pending_timeout == 10.0
