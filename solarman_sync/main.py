# solarman_sync/main.py

import sys

from .cli import build_parser
from .config import Config
from .errors import SyncError
from .logging import ConsoleLog, StructuredLog, SyncRunLogEntry

from .services.credential_cache import CredentialCache
from .services.csv_writer import CsvSyncWriter
from .services.fingerprint import config_fingerprint
from .services.metadata_store import MetadataStore
from .services.output_formatter import emit_result_human, emit_result_json, emit_status
from .services.solarman_client import SolarmanAPIClient
from .services.sync_orchestrator import SyncOrchestrator
from .services.sync_worker import SyncWorker
from .services.weather_window import read_target_window


def run_sync(app_cfg, log, args, structured_logger) -> int:
    worker = SyncWorker(
        lambda channel, cancel: SyncOrchestrator.from_config(
            app_cfg, log, progress=channel, cancel_event=cancel
        ),
        log,
    )
    worker.start()
    try:
        while not worker.join(timeout=0.5):
            pass
    except KeyboardInterrupt:
        log.warning("Interrupted; stopping after the current day.")
        worker.cancel()
        worker.join()

    structured_logger.write(SyncRunLogEntry.from_run(worker.orchestrator.state, worker.result, worker.error))

    if not args.quiet:
        if args.json:
            emit_result_json(worker.result, worker.error)
        else:
            emit_result_human(worker.result, worker.error)
    return 0 if worker.error is None else 1


def run_status(app_cfg, log, args) -> int:
    sync_cfg = app_cfg.sync
    writer = CsvSyncWriter(sync_cfg.output_path, log)
    emit_status(
        as_json=args.json,
        metadata=MetadataStore(sync_cfg.metadata_path, log).load(),
        config_hash=config_fingerprint(app_cfg.station),
        coverage=writer.read_existing_coverage(),
        target=read_target_window(sync_cfg.weather_path),
        row_count=writer.scan().row_count,
    )
    return 0


def run_auth_test(app_cfg, log) -> int:
    cache = CredentialCache(SolarmanAPIClient(app_cfg.solarman, log), log)
    try:
        credential = cache.get_token()
    except SyncError as exc:
        log.error("Authentication check failed: %s", exc.message)
        return 1
    log.info("Access token valid until %s", credential.expires_at.strftime("%Y-%m-%d %H:%M:%S"))
    return 0


def main():
    parser = build_parser()
    args = parser.parse_args()

    app_cfg = Config.load(args.config)
    console_logger = ConsoleLog(
        level="DEBUG" if args.debug else app_cfg.logging.console_level,
        quiet=args.quiet or app_cfg.logging.console_quiet,
        debug_modules=app_cfg.logging.debug_modules,
    )
    log = console_logger.setup()
    structured_logger = StructuredLog(
        app_cfg.logging.structured_path,
        app_cfg.logging.structured_enabled,
    )

    if args.command == "sync":
        return run_sync(app_cfg, log, args, structured_logger)
    if args.command == "status":
        return run_status(app_cfg, log, args)
    if args.command == "auth-test":
        return run_auth_test(app_cfg, log)
    raise ValueError(f"Unsupported command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
