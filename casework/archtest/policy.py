"""The architecture policy that the boundary checks enforce."""

from __future__ import annotations

from dataclasses import dataclass, field

MODULE_PATH = "example.com/casework"


@dataclass
class Policy:
    """Which verticals exist and how they may depend on one another."""

    root_dir: str = "."
    module_path: str = MODULE_PATH
    verticals: list[str] = field(default_factory=list)
    shared_packages: list[str] = field(default_factory=list)
    allowed_cross_vertical_pkg: list[str] = field(default_factory=list)
    allowed_cross_symbols: set[str] | None = None
    allowed_vertical_subpkgs: list[str] = field(default_factory=list)
    # Verticals that export interfaces and have no concrete implementation.
    facade_only_verticals: list[str] = field(default_factory=list)
    # Verticals that must persist through the event store.
    event_sourced_verticals: list[str] = field(default_factory=list)


def default_policy() -> Policy:
    """Return the policy for the repository this tool guards."""
    return Policy(
        root_dir=".",
        module_path=MODULE_PATH,
        verticals=[
            "account",
            "organization",
            "content",
            "rag",
            "workitem",
            "app_casehandling",
            "app_propertymanagement",
            "app_inquiry",
            "party",
            "subject",
            "rental",
        ],
        shared_packages=["common", "shared", "platform"],
        allowed_cross_vertical_pkg=["facade"],
        allowed_vertical_subpkgs=["domain", "facade", "infra", "web", "subscriber", "testharness"],
        facade_only_verticals=[],
        event_sourced_verticals=["workitem", "party", "subject", "rental"],
        allowed_cross_symbols=None,
    )