from soap_connector.core.resolver import OperationOverride, qualified_name, resolve_name


def test_plain_operation_name_when_free():
    assert resolve_name("S1", "P1", "Foo", set()) == "Foo"


def test_collision_falls_back_to_qualified_name():
    assert resolve_name("S2", "P2", "Foo", {"Foo"}) == "S2_P2_Foo"
    assert qualified_name("S2", "P2", "Foo") == "S2_P2_Foo"


def test_override_without_operation_matches_by_method_name():
    overrides = {"getFoo": OperationOverride(service="S", port="P")}
    assert resolve_name("S", "P", "getFoo", set(), overrides) == "getFoo"
    # already bound, but the override still claims the name
    assert resolve_name("S", "P", "getFoo", {"getFoo"}, overrides) == "getFoo"


def test_override_with_operation_renames():
    overrides = {"quote": OperationOverride(service="S", port="P", operation="GetQuote")}
    assert resolve_name("S", "P", "GetQuote", set(), overrides) == "quote"


def test_override_for_other_port_is_ignored():
    overrides = {"quote": OperationOverride(service="S", port="Other", operation="GetQuote")}
    assert resolve_name("S", "P", "GetQuote", set(), overrides) == "GetQuote"
    assert resolve_name("S", "P", "GetQuote", {"GetQuote"}, overrides) == "S_P_GetQuote"


def test_override_parses_from_plain_mapping():
    override = OperationOverride.model_validate(
        {"service": "S", "port": "P", "operation": "Op", "extra": 1}
    )
    assert override.matches("anything", "S", "P", "Op")
    assert not override.matches("anything", "S", "P", "Other")


def test_override_map_with_explicit_operation():
    overrides = {"getFoo": OperationOverride(service="S", port="P", operation="Foo")}
    assert resolve_name("S", "P", "Foo", set(), overrides) == "getFoo"
    assert resolve_name("S2", "P2", "Foo", {"getFoo"}, overrides) == "Foo"
