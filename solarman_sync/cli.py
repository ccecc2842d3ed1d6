# solarman_sync/cli.py
import argparse

DEFAULT_CONFIG = "solarman_sync.conf"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="solarman-sync",
        description="Keep a local Solarman station CSV aligned with the weather date range",
    )

    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG, help="INI configuration file")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG on the console")
    parser.add_argument("-q", "--quiet", action="store_true", help="No console output; exit code only")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")

    sub = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    sub.add_parser(
        "sync",
        help="Fetch the days missing from the station CSV",
        description="Authenticate, fetch missing days and rewrite the CSV to its last continuous block.",
    )
    sub.add_parser(
        "status",
        help="Show local coverage and what the next sync would fetch (offline)",
    )
    sub.add_parser(
        "auth-test",
        help="Request an access token and print when it expires",
    )

    return parser
