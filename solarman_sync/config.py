# solarman_sync/config.py
from dataclasses import dataclass, field
from pathlib import Path
import configparser


@dataclass
class SolarmanAPIConfig:
    app_id: str | None = None
    app_secret: str | None = None
    email: str | None = None
    password: str | None = None
    device_id: int | None = None
    device_sn: str | None = None
    base_url: str = "https://globalapi.solarmanpv.com"
    timeout: float = 20.0


@dataclass
class StationConfig:
    inverter_power_kw: float = 0.0
    panel_power_w: int = 0
    panel_count: int = 0
    panel_efficiency: float = 0.0
    tilt_deg: int = 0
    latitude: float = 0.0
    longitude: float = 0.0


@dataclass
class SyncConfig:
    data_dir: str = "data/csv"
    output_file: str = "station_data.csv"
    weather_file: str = "weather_last_max_period.csv"
    metadata_file: str = "station_data_metadata.json"
    time_type: int = 1
    max_retries: int = 3
    retry_delay: float = 3.0
    request_delay: float = 0.3
    max_consecutive_failures: int = 3
    key_collection_days: int = 3
    token_guard_minutes: int = 60

    def resolve(self, name: str) -> Path:
        path = Path(name).expanduser()
        if path.is_absolute():
            return path
        return Path(self.data_dir).expanduser() / path

    @property
    def output_path(self) -> Path:
        return self.resolve(self.output_file)

    @property
    def weather_path(self) -> Path:
        return self.resolve(self.weather_file)

    @property
    def metadata_path(self) -> Path:
        return self.resolve(self.metadata_file)


@dataclass
class ConnectivityConfig:
    probe_host: str | None = None
    probe_port: int = 443
    probe_timeout: float = 3.0
    max_wait: float = 300.0
    poll_interval: float = 2.0


@dataclass
class LoggingConfig:
    console_level: str = "INFO"
    console_quiet: bool = False
    debug_modules: list[str] = field(default_factory=list)
    structured_enabled: bool = False
    structured_path: str | None = None


@dataclass
class AppConfig:
    solarman: SolarmanAPIConfig
    station: StationConfig
    sync: SyncConfig
    connectivity: ConnectivityConfig
    logging: LoggingConfig
    source_path: Path | None = None


class Config:
    def __init__(self, path: str):
        self.path = Path(path)
        self.parser = configparser.ConfigParser(inline_comment_prefixes=("#",))
        read = self.parser.read(self.path)
        if not read:
            raise FileNotFoundError(f"Config file not found: {self.path}")

    @classmethod
    def load(cls, path: str) -> AppConfig:
        cfg = cls(path)

        p = cfg.parser

        def _as_bool(value: str) -> bool:
            return value.strip().lower() == "true"

        def _maybe_str(raw: str | None) -> str | None:
            if raw is None:
                return None
            raw = raw.strip()
            return raw or None

        # --- Solarman API ---
        if "solarman" not in p:
            raise ValueError("[solarman] section missing from config")

        api_sec = p["solarman"]
        api_kwargs = {}
        for key in ("app_id", "app_secret", "email", "password", "device_sn"):
            if (value := _maybe_str(api_sec.get(key))) is not None:
                api_kwargs[key] = value
        if (device_id := _maybe_str(api_sec.get("device_id"))) is not None:
            api_kwargs["device_id"] = int(device_id)
        if "base_url" in api_sec:
            api_kwargs["base_url"] = api_sec["base_url"]
        if "timeout" in api_sec:
            api_kwargs["timeout"] = float(api_sec["timeout"])
        solarman_cfg = SolarmanAPIConfig(**api_kwargs)

        # --- Station ---
        station_kwargs = {}
        if "station" in p:
            station_sec = p["station"]
            if "inverter_power_kw" in station_sec:
                station_kwargs["inverter_power_kw"] = float(station_sec["inverter_power_kw"])
            if "panel_power_w" in station_sec:
                station_kwargs["panel_power_w"] = int(station_sec["panel_power_w"])
            if "panel_count" in station_sec:
                station_kwargs["panel_count"] = int(station_sec["panel_count"])
            if "panel_efficiency" in station_sec:
                station_kwargs["panel_efficiency"] = float(station_sec["panel_efficiency"])
            if "tilt_deg" in station_sec:
                station_kwargs["tilt_deg"] = int(station_sec["tilt_deg"])
            if "latitude" in station_sec:
                station_kwargs["latitude"] = float(station_sec["latitude"])
            if "longitude" in station_sec:
                station_kwargs["longitude"] = float(station_sec["longitude"])
        station_cfg = StationConfig(**station_kwargs)

        # --- Sync ---
        sync_kwargs = {}
        if "sync" in p:
            sync_sec = p["sync"]
            for key in ("data_dir", "output_file", "weather_file", "metadata_file"):
                if key in sync_sec:
                    sync_kwargs[key] = sync_sec[key]
            for key in ("time_type", "max_retries", "max_consecutive_failures", "key_collection_days", "token_guard_minutes"):
                if key in sync_sec:
                    sync_kwargs[key] = int(sync_sec[key])
            for key in ("retry_delay", "request_delay"):
                if key in sync_sec:
                    sync_kwargs[key] = float(sync_sec[key])
        sync_cfg = SyncConfig(**sync_kwargs)

        # --- Connectivity ---
        connectivity_kwargs = {}
        if "connectivity" in p:
            conn_sec = p["connectivity"]
            if (probe_host := _maybe_str(conn_sec.get("probe_host"))) is not None:
                connectivity_kwargs["probe_host"] = probe_host
            if "probe_port" in conn_sec:
                connectivity_kwargs["probe_port"] = int(conn_sec["probe_port"])
            if "probe_timeout" in conn_sec:
                connectivity_kwargs["probe_timeout"] = float(conn_sec["probe_timeout"])
            if "max_wait" in conn_sec:
                connectivity_kwargs["max_wait"] = float(conn_sec["max_wait"])
            if "poll_interval" in conn_sec:
                connectivity_kwargs["poll_interval"] = float(conn_sec["poll_interval"])
        connectivity_cfg = ConnectivityConfig(**connectivity_kwargs)

        logging_kwargs = {}
        if "logging" in p:
            logging_sec = p["logging"]
            if "console_level" in logging_sec:
                logging_kwargs["console_level"] = logging_sec["console_level"]
            if "console_quiet" in logging_sec:
                logging_kwargs["console_quiet"] = _as_bool(logging_sec["console_quiet"])
            if "debug_modules" in logging_sec:
                raw = logging_sec["debug_modules"]
                logging_kwargs["debug_modules"] = [x.strip() for x in raw.split(",") if x.strip()]
            if "structured_enabled" in logging_sec:
                logging_kwargs["structured_enabled"] = _as_bool(logging_sec["structured_enabled"])
            if "structured_path" in logging_sec:
                logging_kwargs["structured_path"] = logging_sec["structured_path"]
        logging_cfg = LoggingConfig(**logging_kwargs)

        return AppConfig(
            solarman=solarman_cfg,
            station=station_cfg,
            sync=sync_cfg,
            connectivity=connectivity_cfg,
            logging=logging_cfg,
            source_path=cfg.path,
        )
