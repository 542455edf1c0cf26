#!/usr/bin/env python3
"""
Acquire an access token through the interactive login flow.

Usage:
    python scripts/get_token.py [--headed] [--timeout SECONDS] [--json]

Reads the same FHIR_CONFORMANCE_* settings as the suite. Useful for
checking credentials and the login form selector before a full run.
"""

import argparse
import asyncio
import json
import sys

from pydantic import ValidationError

from fhir_conformance.auth.flow import AuthSession
from fhir_conformance.config import configure_logging, get_settings
from fhir_conformance.errors import ConformanceSuiteError


def report_failure(error: dict, as_json: bool) -> int:
    """Print a failure the same way for every error source and return the exit code."""
    if as_json:
        print(json.dumps(error, indent=2))
    else:
        print(f"[FAIL] {error['message']}", file=sys.stderr)
    return 1


async def acquire_token(session: AuthSession) -> str:
    """Run the flow once and release every resource afterwards."""
    try:
        return await session.acquire()
    finally:
        await session.release()


def main():
    parser = argparse.ArgumentParser(description="Acquire an access token for the FHIR server under test")
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window while logging in",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the authorization code (default: from settings)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    args = parser.parse_args()

    try:
        settings = get_settings()
    except ValidationError as e:
        messages = "; ".join(err["msg"] for err in e.errors())
        return report_failure(
            {"error": "ConfigurationError", "message": f"Invalid configuration: {messages}"},
            args.json,
        )
    configure_logging(settings.log_level, settings.log_json)

    if not settings.authorized:
        print("FHIR_CONFORMANCE_AUTHORIZED is false; the server under test needs no token.")
        return 0

    overrides: dict = {}
    if args.headed:
        overrides["browser_headless"] = False
    if args.timeout is not None:
        overrides["code_timeout_seconds"] = args.timeout

    session = AuthSession.create(settings.model_copy(update=overrides))

    try:
        token = asyncio.run(acquire_token(session))
    except ConformanceSuiteError as e:
        return report_failure(e.to_dict(), args.json)
    except OSError as e:
        # Usually the callback port is taken by another process
        return report_failure(
            {
                "error": "CallbackListenerError",
                "message": (
                    "Could not start callback listener on "
                    f"{settings.callback_host}:{settings.callback_port}: {e}"
                ),
            },
            args.json,
        )

    if args.json:
        print(json.dumps({"access_token": token}, indent=2))
    else:
        print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
