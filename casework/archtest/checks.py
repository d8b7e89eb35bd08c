"""Architecture boundary checks over a tree of Go packages."""

from __future__ import annotations

import os
import stat
from typing import Iterator, Optional

from casework.archtest.goscan import (
    GoSyntaxError,
    dir_exists,
    dir_exports_func,
    dir_imports_package,
    get_imports,
    interface_declarations,
    rel_path,
    time_now_references,
)
from casework.archtest.policy import MODULE_PATH, Policy

# Import path prefixes that domain packages must never use: domain code is pure
# business logic with no infrastructure coupling.
FORBIDDEN_DOMAIN_IMPORTS = (
    MODULE_PATH + "/internal/platform/",
    "database/sql",
    "net/http",
    "github.com/jackc/pgx",
)

# Method name prefixes that signal cross-aggregate invariant checks; these belong
# in domain service interfaces, not in facade query models.
WRITE_PATH_METHOD_PREFIXES = ("Exists", "Has", "Check", "IsDuplicate")

_BUSINESS_DIRS = ("domain", "facade", "infra", "subscriber")
_READ_ERRORS = (GoSyntaxError, OSError)


def _join(*parts: str) -> str:
    return os.path.normpath(os.path.join(*parts))


def _go_list(items: list[str]) -> str:
    return "[" + " ".join(items) + "]"


def _is_dir_no_follow(path: str) -> bool:
    return stat.S_ISDIR(os.lstat(path).st_mode)


def _walk_dir(directory: str) -> Iterator[str]:
    for name in sorted(os.listdir(directory)):
        path = os.path.join(directory, name)
        if _is_dir_no_follow(path):
            yield from _walk_dir(path)
        else:
            yield path


def _walk_files(root: str, *, missing_ok: bool) -> Iterator[str]:
    """Yield every non-directory path below ``root`` in lexical order."""
    try:
        info = os.lstat(root)
    except FileNotFoundError:
        if missing_ok:
            return
        raise
    if not stat.S_ISDIR(info.st_mode):
        yield root
        return
    yield from _walk_dir(root)


def _is_source(path: str) -> bool:
    return path.endswith(".go") and not path.endswith("_test.go")


def internal_vertical_path_parts(policy: Policy, import_path: str) -> Optional[tuple[str, str]]:
    """Split an internal import path into (vertical, subpackage), or None if it is not one."""
    prefix = policy.module_path + "/internal/"
    if not import_path.startswith(prefix):
        return None
    parts = import_path[len(prefix):].split("/")
    if len(parts) < 2 or parts[0] not in policy.verticals:
        return None
    return parts[0], parts[1]


def check_import_boundaries(policy: Policy) -> list[str]:
    """Report imports of another vertical's packages other than the allowed ones."""
    violations: list[str] = []
    allowed = _go_list(policy.allowed_cross_vertical_pkg)
    for from_vertical in policy.verticals:
        vertical_dir = _join(policy.root_dir, "internal", from_vertical)
        for path in _walk_files(vertical_dir, missing_ok=False):
            if not path.endswith(".go") or path.endswith(("_test.go", "_templ.go")):
                continue
            try:
                imports = get_imports(path)
            except _READ_ERRORS:
                continue
            for imp in imports:
                parts = internal_vertical_path_parts(policy, imp)
                if parts is None or parts[0] == from_vertical:
                    continue
                if parts[1] not in policy.allowed_cross_vertical_pkg:
                    violations.append(
                        f"{rel_path(policy.root_dir, path)} imports {imp} "
                        f"(cross-vertical imports allowed only via {allowed} packages)"
                    )
    return violations


def check_domain_purity(policy: Policy) -> list[str]:
    """Report domain packages that import infrastructure."""
    violations: list[str] = []
    for vertical in policy.verticals:
        domain_dir = _join(policy.root_dir, "internal", vertical, "domain")
        for path in _walk_files(domain_dir, missing_ok=True):
            if not _is_source(path):
                continue
            try:
                imports = get_imports(path)
            except _READ_ERRORS:
                continue
            for imp in imports:
                for forbidden in FORBIDDEN_DOMAIN_IMPORTS:
                    if imp.startswith(forbidden):
                        violations.append(
                            f"{rel_path(policy.root_dir, path)} imports {imp} "
                            "(domain packages must not import infrastructure)"
                        )
    return violations


def check_no_exported_facade_interfaces(policy: Policy) -> list[str]:
    """Report facade packages that export interface types."""
    facade_only = set(policy.facade_only_verticals)
    violations: list[str] = []
    for vertical in policy.verticals:
        if vertical in facade_only:
            continue
        facade_dir = _join(policy.root_dir, "internal", vertical, "facade")
        for path in _walk_files(facade_dir, missing_ok=True):
            if not _is_source(path):
                continue
            try:
                declarations = interface_declarations(path)
            except _READ_ERRORS:
                continue
            for name, _methods in declarations:
                if name[:1].isupper():
                    violations.append(
                        f"{rel_path(policy.root_dir, path)} exports interface {name} "
                        "(interfaces should be defined by consumers, not in facade packages)"
                    )
    return violations


def check_vertical_subpackages(policy: Policy) -> list[str]:
    """Report directories inside a vertical that are not recognised subpackages."""
    allowed = set(policy.allowed_vertical_subpkgs)
    violations: list[str] = []
    for vertical in policy.verticals:
        vertical_dir = _join(policy.root_dir, "internal", vertical)
        try:
            names = sorted(os.listdir(vertical_dir))
        except FileNotFoundError:
            continue
        for name in names:
            if not _is_dir_no_follow(os.path.join(vertical_dir, name)):
                continue
            if name not in allowed:
                violations.append(
                    f"internal/{vertical}/{name} is not a recognized vertical subpackage "
                    f"(allowed: {_go_list(policy.allowed_vertical_subpkgs)})"
                )
    return violations


def check_no_unknown_verticals(policy: Policy) -> list[str]:
    """Report directories under internal/ that the policy does not declare."""
    internal_dir = _join(policy.root_dir, "internal")
    try:
        names = sorted(os.listdir(internal_dir))
    except OSError as exc:
        raise OSError(f"read internal/: {exc}") from exc
    known = set(policy.verticals) | set(policy.shared_packages)
    return [
        f"internal/{name} is not declared in archtest policy (add to verticals or sharedPackages)"
        for name in names
        if _is_dir_no_follow(os.path.join(internal_dir, name)) and name not in known
    ]


def check_event_store_immutability(policy: Policy) -> list[str]:
    """Report lines in the event store that look like mutating SQL."""
    store_dir = _join(policy.root_dir, "internal", "platform", "eventstore")
    violations: list[str] = []
    for path in _walk_files(store_dir, missing_ok=True):
        if not _is_source(path):
            continue
        try:
            with open(path, "rb") as handle:
                content = handle.read().decode("utf-8", errors="replace")
        except OSError:
            continue
        for number, line in enumerate(content.split("\n"), start=1):
            upper = line.upper()
            if "UPDATE " not in upper and "DELETE " not in upper:
                continue
            stripped = line.strip()
            # Comments that discuss the rule itself are fine.
            if stripped.startswith("//"):
                continue
            violations.append(
                f"{rel_path(policy.root_dir, path)}:{number} contains mutation SQL "
                f"(event store must be append-only): {stripped}"
            )
    return violations


def check_no_direct_time_now(policy: Policy) -> list[str]:
    """Report business code that reads the wall clock instead of an injected Clock."""
    violations: list[str] = []
    for vertical in policy.verticals:
        for subpkg in _BUSINESS_DIRS:
            directory = _join(policy.root_dir, "internal", vertical, subpkg)
            for path in _walk_files(directory, missing_ok=True):
                if not _is_source(path):
                    continue
                try:
                    lines = time_now_references(path)
                except _READ_ERRORS:
                    continue
                violations.extend(
                    f"{rel_path(policy.root_dir, path)}:{line} references time.Now "
                    "(inject a Clock instead)"
                    for line in lines
                )
    return violations


def check_event_sourcing_required(policy: Policy) -> list[str]:
    """Report event-sourced verticals that do not persist through the event store.

    The facade must import platform/eventstore and the domain must export
    DeserializeEvent for replay.
    """
    eventstore_pkg = policy.module_path + "/internal/platform/eventstore"
    violations: list[str] = []
    for vertical in policy.event_sourced_verticals:
        facade_dir = _join(policy.root_dir, "internal", vertical, "facade")
        if not dir_exists(facade_dir):
            violations.append(f"internal/{vertical}: event-sourced vertical has no facade/ package")
            continue
        if not dir_imports_package(facade_dir, eventstore_pkg):
            violations.append(
                f"internal/{vertical}/facade does not import platform/eventstore "
                "(event-sourced verticals must persist through the event store, not CRUD)"
            )
        domain_dir = _join(policy.root_dir, "internal", vertical, "domain")
        if not dir_exists(domain_dir):
            violations.append(f"internal/{vertical}: event-sourced vertical has no domain/ package")
            continue
        if not dir_exports_func(domain_dir, "DeserializeEvent"):
            violations.append(
                f"internal/{vertical}/domain does not export DeserializeEvent "
                "(needed for event replay/reconstitution)"
            )
    return violations


def check_facade_write_path_purity(policy: Policy) -> list[str]:
    """Report facade interfaces of event-sourced verticals that declare existence checks."""
    violations: list[str] = []
    for vertical in policy.event_sourced_verticals:
        facade_dir = _join(policy.root_dir, "internal", vertical, "facade")
        if not dir_exists(facade_dir):
            continue
        for name in sorted(os.listdir(facade_dir)):
            path = os.path.join(facade_dir, name)
            if _is_dir_no_follow(path) or not _is_source(name):
                continue
            try:
                declarations = interface_declarations(path)
            except _READ_ERRORS:
                continue
            for iface, methods in declarations:
                for method in methods:
                    for prefix in WRITE_PATH_METHOD_PREFIXES:
                        if method.startswith(prefix):
                            violations.append(
                                f"{rel_path(policy.root_dir, path)}: facade interface {iface} "
                                f"declares {method} (cross-aggregate invariant checks belong in "
                                "domain service interfaces, not facade query models)"
                            )
    return violations