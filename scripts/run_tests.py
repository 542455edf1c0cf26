#!/usr/bin/env python3
"""
Test runner script for the FHIR conformance suite.

Usage:
    python scripts/run_tests.py [--coverage] [--verbose] [--e2e] [pattern]

Examples:
    python scripts/run_tests.py                    # Unit tests only
    python scripts/run_tests.py --e2e              # Include live-server checks
    python scripts/run_tests.py --coverage         # Run with coverage report
    python scripts/run_tests.py test_flow          # Run tests matching pattern

Live-server checks need FHIR_CONFORMANCE_FHIR_SERVER_URL (and, for an
authorized server, the OAuth client settings and a Playwright browser:
``playwright install chromium``).
"""

import subprocess
import sys
from pathlib import Path


def main():
    args = sys.argv[1:]

    cmd = ["uv", "run", "pytest"]

    coverage = False
    verbose = False
    e2e = False
    patterns = []

    for arg in args:
        if arg == "--coverage":
            coverage = True
        elif arg == "--verbose" or arg == "-v":
            verbose = True
        elif arg == "--e2e":
            e2e = True
        elif not arg.startswith("-"):
            patterns.append(arg)

    if coverage:
        cmd.extend(["--cov=fhir_conformance", "--cov-report=term-missing"])

    cmd.append("-v" if verbose else "-q")

    if not e2e:
        cmd.extend(["-m", "not e2e"])

    if patterns:
        cmd.extend(["-k", " or ".join(patterns)])

    project_root = Path(__file__).parent.parent

    print(f"Running: {' '.join(cmd)}")
    print("-" * 60)

    result = subprocess.run(cmd, cwd=project_root)
    sys.exit(result.returncode)


if __name__ == "__main__":
    main()
