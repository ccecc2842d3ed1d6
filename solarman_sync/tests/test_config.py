from pathlib import Path

import pytest

from solarman_sync.config import Config

CONF = """
[solarman]
app_id = 2024010101
app_secret = s3cret
email = owner@example.com
password = hunter2   # plain text, hashed before sending
device_id = 1234567
device_sn =

[station]
inverter_power_kw = 5
panel_power_w = 400
panel_count = 12
panel_efficiency = 0.21
tilt_deg = 30
latitude = 50.4501
longitude = 30.5234

[sync]
data_dir = /var/lib/solarman
output_file = station.csv
max_retries = 5
retry_delay = 1.5
key_collection_days = 2

[connectivity]
probe_host = 8.8.8.8
probe_port = 53
max_wait = 60

[logging]
console_level = debug
debug_modules = solarman.csv, solarman.metadata
structured_enabled = true
structured_path = /tmp/solarman-runs.jsonl
"""


def test_full_config(tmp_path):
    conf_path = tmp_path / "solarman_sync.conf"
    conf_path.write_text(CONF)

    cfg = Config.load(str(conf_path))

    assert cfg.solarman.app_id == "2024010101"
    assert cfg.solarman.password == "hunter2"
    assert cfg.solarman.device_id == 1234567
    assert cfg.solarman.device_sn is None
    assert cfg.solarman.base_url == "https://globalapi.solarmanpv.com"
    assert cfg.solarman.timeout == 20.0

    assert cfg.station.inverter_power_kw == 5.0
    assert cfg.station.panel_count == 12
    assert cfg.station.longitude == pytest.approx(30.5234)

    assert cfg.sync.max_retries == 5
    assert cfg.sync.retry_delay == 1.5
    assert cfg.sync.key_collection_days == 2
    assert cfg.sync.max_consecutive_failures == 3
    assert cfg.sync.output_path == Path("/var/lib/solarman/station.csv")
    assert cfg.sync.weather_path == Path("/var/lib/solarman/weather_last_max_period.csv")
    assert cfg.sync.metadata_path == Path("/var/lib/solarman/station_data_metadata.json")

    assert cfg.connectivity.probe_host == "8.8.8.8"
    assert cfg.connectivity.probe_port == 53
    assert cfg.connectivity.max_wait == 60.0
    assert cfg.connectivity.poll_interval == 2.0

    assert cfg.logging.console_level == "debug"
    assert cfg.logging.debug_modules == ["solarman.csv", "solarman.metadata"]
    assert cfg.logging.structured_enabled is True
    assert cfg.source_path == conf_path


def test_minimal_config_uses_defaults(tmp_path):
    conf_path = tmp_path / "solarman_sync.conf"
    conf_path.write_text("[solarman]\napp_id = 1\n")

    cfg = Config.load(str(conf_path))

    assert cfg.solarman.email is None
    assert cfg.station.panel_count == 0
    assert cfg.sync.output_path == Path("data/csv/station_data.csv")
    assert cfg.sync.request_delay == 0.3
    assert cfg.sync.token_guard_minutes == 60
    assert cfg.connectivity.max_wait == 300.0
    assert cfg.logging.structured_enabled is False


def test_missing_solarman_section(tmp_path):
    conf_path = tmp_path / "solarman_sync.conf"
    conf_path.write_text("[station]\npanel_count = 1\n")

    with pytest.raises(ValueError, match=r"\[solarman\]"):
        Config.load(str(conf_path))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config.load(str(tmp_path / "nope.conf"))
