"""
CLI utility to check which providers the MCP server can use.

Reads the same environment variables (and .env file) as the server and
reports, per provider, whether its credential resolves. Nothing is sent to
any provider unless --probe-calendar is given, in which case the startup
calendar catalog is loaded exactly as the server would load it.

Usage examples:

    # Configuration status only (no network calls)
    python -m scripts.check_credentials

    # Machine-readable output
    python -m scripts.check_credentials --json

    # Also verify the OAuth tokens by listing calendars
    python -m scripts.check_credentials --probe-calendar

Exit status is 0 when every required provider is configured, 1 otherwise.
The optional news key never affects the exit status.
"""

import argparse
import asyncio
import json

from toolbridge.credentials import API_KEY_VARIABLES, OAUTH_VARIABLES, ProviderKind, credential_status
from toolbridge.providers.calendar import load_calendar_catalog


def describe_requirements(kind: ProviderKind) -> str:
    if kind.uses_oauth:
        return ", ".join(OAUTH_VARIABLES)
    return API_KEY_VARIABLES[kind]


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Check provider credentials for the toolbridge MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Status table:
    %(prog)s

  JSON output:
    %(prog)s --json

  Verify OAuth tokens against Google Calendar:
    %(prog)s --probe-calendar
        """,
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the status as a JSON object instead of a table",
    )
    parser.add_argument(
        "--probe-calendar",
        action="store_true",
        help="Load the calendar catalog to verify the OAuth tokens (one network call)",
    )

    args = parser.parse_args()

    status = credential_status()
    report: dict = {"providers": status}

    if args.probe_calendar:
        catalog = asyncio.run(load_calendar_catalog())
        report["calendars"] = [entry.id for entry in catalog.entries] if catalog.loaded else None

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        for kind in ProviderKind:
            state = "configured" if status[kind.value] else "MISSING"
            print(f"{kind.value:<10} {state:<11} ({describe_requirements(kind)})")
        news = "configured" if status["news"] else "not set"
        print(f"{'news':<10} {news:<11} (NEWS_API_KEY, optional)")
        if args.probe_calendar:
            print()
            if report["calendars"] is None:
                print("Calendar probe failed: falling back to 'primary' (see log output)")
            else:
                print(f"Calendars: {', '.join(report['calendars'])}")

    required = [configured for name, configured in status.items() if name != "news"]
    raise SystemExit(0 if all(required) else 1)


if __name__ == "__main__":
    main()
