#!/usr/bin/env python3
"""Quick helper to inspect one day of Solarman history."""

import sys
from datetime import date, timedelta

from solarman_sync.config import Config
from solarman_sync.logging import ConsoleLog
from solarman_sync.services.credential_cache import CredentialCache
from solarman_sync.services.solarman_client import SolarmanAPIClient


def main() -> None:
    log = ConsoleLog(level="DEBUG").setup()
    cfg = Config.load("solarman_sync.conf")
    client = SolarmanAPIClient(cfg.solarman, log)

    credential = CredentialCache(client, log).get_token()
    print("Token expires:", credential.expires_at)

    day = date.fromisoformat(sys.argv[1]) if len(sys.argv) > 1 else date.today() - timedelta(days=1)
    resp = client.request_history(credential.token, day, day, cfg.sync.time_type)
    print("HTTP", resp.status_code, "success" if resp.success else resp.message)

    records = client.parse_records(resp.payload)
    print(f"{len(records)} records for {day.isoformat()}")
    for record in records[:3]:
        print(f" - {record.collect_time}: {len(record.values)} keys")
    if records:
        print("Keys:", ", ".join(sorted(records[0].values)))


if __name__ == "__main__":
    main()
