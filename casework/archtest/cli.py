"""Command that runs every architecture boundary check and reports violations."""

from __future__ import annotations

import argparse
import os
from typing import Callable, Optional, Sequence

from casework.archtest import checks
from casework.archtest.policy import Policy, default_policy

_CHECKS: tuple[tuple[str, Callable[[Policy], list[str]]], ...] = (
    ("import boundaries", checks.check_import_boundaries),
    ("domain purity", checks.check_domain_purity),
    ("facade interfaces", checks.check_no_exported_facade_interfaces),
    ("vertical subpackages", checks.check_vertical_subpackages),
    ("unknown verticals", checks.check_no_unknown_verticals),
    ("event store immutability", checks.check_event_store_immutability),
    ("time.Now()", checks.check_no_direct_time_now),
    ("event sourcing", checks.check_event_sourcing_required),
    ("facade write-path purity", checks.check_facade_write_path_purity),
)


class _CheckFailedError(RuntimeError):
    """A check could not run to completion."""


def run_checks(policy: Policy) -> list[str]:
    """Run every check and return all violations, sorted."""
    violations: list[str] = []
    for name, check in _CHECKS:
        try:
            violations.extend(check(policy))
        except (OSError, ValueError) as exc:
            raise _CheckFailedError(f"archtest {name} check failed: {exc}") from exc
    return sorted(violations)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the checks; return 1 on violations unless ARCHTEST_REPORT_ONLY=1."""
    parser = argparse.ArgumentParser(prog="archtest", description=__doc__)
    parser.add_argument("--root", help="repository root (default: current directory)")
    args = parser.parse_args(argv)

    policy = default_policy()
    if args.root is not None:
        policy.root_dir = args.root

    try:
        violations = run_checks(policy)
    except _CheckFailedError as exc:
        print(exc)
        return 1

    report_only = os.environ.get("ARCHTEST_REPORT_ONLY") == "1"
    if violations:
        print("Architecture boundary violations:")
        for violation in violations:
            print(f"  VIOLATION: {violation}")
        if not report_only:
            return 1
        print("ARCHTEST_REPORT_ONLY=1 set; reporting only.")

    print("Architecture boundary checks passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())