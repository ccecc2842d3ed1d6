from __future__ import annotations

import hashlib

from solarman_sync.config import StationConfig

FINGERPRINT_LENGTH = 16


def encode_station(station: StationConfig) -> str:
    return "%.2f_%d_%d_%.4f_%d_%.6f_%.6f" % (
        station.inverter_power_kw,
        station.panel_power_w,
        station.panel_count,
        station.panel_efficiency,
        station.tilt_deg,
        station.latitude,
        station.longitude,
    )


def config_fingerprint(station: StationConfig) -> str:
    """Short SHA-256 digest of the plant geometry, used only for equality checks."""
    digest = hashlib.sha256(encode_station(station).encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]
