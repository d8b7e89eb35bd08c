from casework.archtest.policy import MODULE_PATH, Policy, default_policy


def test_default_policy_module_path():
    assert default_policy().module_path == "example.com/casework"
    assert default_policy().module_path == MODULE_PATH


def test_default_policy_root_and_symbols():
    policy = default_policy()
    assert policy.root_dir == "."
    assert policy.allowed_cross_symbols is None


def test_default_policy_verticals():
    policy = default_policy()
    assert policy.verticals == [
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
    ]


def test_default_policy_packages():
    policy = default_policy()
    assert policy.shared_packages == ["common", "shared", "platform"]
    assert policy.allowed_cross_vertical_pkg == ["facade"]
    assert policy.allowed_vertical_subpkgs == [
        "domain",
        "facade",
        "infra",
        "web",
        "subscriber",
        "testharness",
    ]
    assert policy.facade_only_verticals == []


def test_event_sourced_verticals_are_declared_verticals():
    policy = default_policy()
    assert policy.event_sourced_verticals == ["workitem", "party", "subject", "rental"]
    assert set(policy.event_sourced_verticals) <= set(policy.verticals)


def test_shared_packages_are_not_verticals():
    policy = default_policy()
    overlap = [name for name in policy.shared_packages if name in policy.verticals]
    assert overlap == []


def test_each_call_returns_independent_lists():
    first = default_policy()
    first.verticals.append("extra")
    assert "extra" not in default_policy().verticals


def test_policy_defaults_are_empty():
    policy = Policy()
    assert policy.verticals == []
    assert policy.event_sourced_verticals == []
    assert policy.module_path == MODULE_PATH