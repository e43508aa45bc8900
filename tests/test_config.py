import json

from config import (
    DEFAULT_CONFIG,
    DEVNET_RPC,
    MAINNET_RPC,
    get_rpc_endpoint,
    load_config,
    load_config_from_env,
    parse_env_value,
    save_config,
    validate_config,
)


class TestLoadConfig:
    def test_creates_default_file_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)

        config = load_config()

        assert config == DEFAULT_CONFIG
        assert json.loads((tmp_path / "config.json").read_text()) == DEFAULT_CONFIG

    def test_fills_missing_keys(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        (tmp_path / "config.json").write_text(json.dumps({"SIMULATION_MODE": False}))

        config = load_config()

        assert config["SIMULATION_MODE"] is False
        assert config["GRADUATION_THRESHOLD_SOL"] == DEFAULT_CONFIG["GRADUATION_THRESHOLD_SOL"]

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        (tmp_path / "config.json").write_text("{not json")

        assert load_config() == DEFAULT_CONFIG

    def test_save_round_trip(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        config = dict(DEFAULT_CONFIG, NETWORK="devnet")

        assert save_config(config) is True
        assert load_config()["NETWORK"] == "devnet"


class TestEnvConfig:
    def test_types_follow_defaults(self, monkeypatch):
        monkeypatch.setenv("SIMULATION_MODE", "false")
        monkeypatch.setenv("DEFAULT_SLIPPAGE_BPS", "250")
        monkeypatch.setenv("BRIDGE_FEE_PERCENT", "0.05")
        monkeypatch.setenv("CARD_CATEGORIES", "a, b ,c")

        config = load_config_from_env()

        assert config["SIMULATION_MODE"] is False
        assert config["DEFAULT_SLIPPAGE_BPS"] == 250
        assert config["BRIDGE_FEE_PERCENT"] == 0.05
        assert config["CARD_CATEGORIES"] == ["a", "b", "c"]

    def test_unparseable_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "soon")

        assert load_config_from_env()["HTTP_TIMEOUT_SECONDS"] == DEFAULT_CONFIG["HTTP_TIMEOUT_SECONDS"]

    def test_use_env_config_switch(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("USE_ENV_CONFIG", "true")
        monkeypatch.setenv("NETWORK", "devnet")

        assert load_config()["NETWORK"] == "devnet"
        assert not (tmp_path / "config.json").exists()


class TestRpcEndpoint:
    def test_explicit_endpoint_wins(self):
        assert get_rpc_endpoint({"RPC_HTTP_ENDPOINT": "http://localhost:8899", "NETWORK": "devnet"}) == \
            "http://localhost:8899"

    def test_network_selection(self):
        assert get_rpc_endpoint({"NETWORK": "devnet"}) == DEVNET_RPC
        assert get_rpc_endpoint({"NETWORK": "mainnet"}) == MAINNET_RPC
        assert get_rpc_endpoint({}) == MAINNET_RPC


class TestConfigFile:
    def test_explicit_path(self, tmp_path, monkeypatch):
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        path = tmp_path / "oof.json"
        path.write_text(json.dumps({"DUST_THRESHOLD_USD": 5.0}))

        assert load_config(str(path))["DUST_THRESHOLD_USD"] == 5.0

    def test_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        path = tmp_path / "custom.json"
        monkeypatch.setenv("OOF_CONFIG_FILE", str(path))

        load_config()

        assert json.loads(path.read_text()) == DEFAULT_CONFIG

    def test_non_object_json_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("USE_ENV_CONFIG", raising=False)
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")

        assert load_config(str(path)) == DEFAULT_CONFIG


class TestValidation:
    def test_defaults_are_valid(self):
        assert validate_config(DEFAULT_CONFIG) == []

    def test_problems_reported(self):
        problems = validate_config(dict(DEFAULT_CONFIG, DEFAULT_SLIPPAGE_BPS=20_000, BRIDGE_FEE_PERCENT=3,
                                        CARD_CATEGORIES=[]))

        assert len(problems) == 3

    def test_live_mode_needs_bridge_settings(self):
        problems = validate_config(dict(DEFAULT_CONFIG, SIMULATION_MODE=False))

        assert any("OOF_TOKEN_MINT" in p for p in problems)
        assert any("BRIDGE_WALLET_ADDRESS" in p for p in problems)

    def test_env_value_parsing(self):
        assert parse_env_value("yes", False) is True
        assert parse_env_value("7", 1) == 7
        assert parse_env_value("0.5", 1.0) == 0.5
        assert parse_env_value("x,y", []) == ["x", "y"]
        assert parse_env_value("devnet", "mainnet") == "devnet"
