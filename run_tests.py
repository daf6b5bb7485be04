#!/usr/bin/env python3
# CrownShift/run_tests.py
"""
Test runner script for the CrownShift project.
Provides convenient testing commands and coverage reporting.
"""

import sys
import subprocess
import argparse


def run_command(cmd, description=""):
    """Run a command and exit with its return code on failure."""
    if description:
        print(f"\n{description}")
        print("-" * 50)

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.stdout:
        print(result.stdout)
    if result.stderr:
        print(result.stderr, file=sys.stderr)

    if result.returncode != 0:
        print(f"Command failed with return code {result.returncode}")
        sys.exit(result.returncode)

    return result


def build_marker_expression(args):
    """Combine the marker filters into a single -m expression."""
    excluded = []
    if args.unit_only:
        excluded.append("integration")
    if args.fast:
        excluded.append("slow")
    return " and ".join(f"not {marker}" for marker in excluded)


def main():
    parser = argparse.ArgumentParser(description="CrownShift test runner")
    parser.add_argument(
        "--coverage",
        action="store_true",
        help="Run tests with coverage reporting"
    )
    parser.add_argument(
        "--unit-only",
        action="store_true",
        help="Skip the CLI integration tests"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    parser.add_argument(
        "--fast",
        action="store_true",
        help="Skip slow tests (synthetic forest runs)"
    )
    parser.add_argument(
        "--pattern",
        type=str,
        help="Run tests matching pattern"
    )

    args = parser.parse_args()

    cmd = [sys.executable, "-m", "pytest", "tests/"]

    if args.coverage:
        cmd.extend([
            "--cov=crownshift",
            "--cov-report=html",
            "--cov-report=term-missing",
            "--cov-branch"
        ])

    if args.verbose:
        cmd.append("-v")

    markers = build_marker_expression(args)
    if markers:
        cmd.extend(["-m", markers])

    if args.pattern:
        cmd.extend(["-k", args.pattern])

    run_command(cmd, "Running CrownShift Tests")

    if args.coverage:
        print("\nCoverage report generated in htmlcov/index.html")


if __name__ == "__main__":
    main()
