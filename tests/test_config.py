import config


def test_load_config_reads_user_file(habla_home):
    cfg = config.load_config()
    assert cfg["database"]["path"].endswith("habla.db")
    assert cfg["lesson"]["target_retention"] == 0.9
    assert cfg["lesson"]["seed_per_day"] is True
    assert cfg["lesson"]["practice_size"] == 20
    assert cfg["ollama"]["enabled"] is False
    assert cfg["server"]["port"] == 8080
    assert cfg["lyrics"]["base_url"] == "https://lrclib.net/api/get"


def test_env_overrides_file_values(habla_home, monkeypatch):
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("TARGET_RETENTION", "0.85")
    monkeypatch.setenv("OLLAMA_ENABLED", "yes")
    monkeypatch.setenv("DB_PATH", "/tmp/other.db")
    cfg = config.load_config()
    assert cfg["server"]["port"] == 9090
    assert cfg["server"]["log_level"] == "DEBUG"
    assert cfg["lesson"]["target_retention"] == 0.85
    assert cfg["ollama"]["enabled"] is True
    assert cfg["database"]["path"] == "/tmp/other.db"


def test_example_config_is_copied_on_first_run(tmp_path, monkeypatch):
    for name in ("DB_PATH", "PORT", "OLLAMA_ENABLED", "TARGET_RETENTION"):
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / "fresh"
    monkeypatch.setattr(config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config, "CONFIG_PATH", config_dir / "config.toml")

    cfg = config.load_config()

    assert (config_dir / "config.toml").exists()
    assert cfg["database"]["path"] == str(config_dir / "habla.db")
    assert cfg["grading"]["levenshtein_good_threshold"] == 0.85


def test_get_config_value(habla_home):
    assert config.get_config_value("ollama", "model") == "llama3.2"
    assert config.get_config_value("ollama", "missing", "fallback") == "fallback"
