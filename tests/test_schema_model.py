import dataclasses

import pytest

from schema_normal_forms import (
    CONFIG,
    Attribute,
    ForeignKey,
    FunctionalDependency,
    SchemaError,
    Table,
    build_schema,
)


def sales_table(**overrides):
    params = dict(
        name="Sales",
        attributes=["SalesId", "CustomerId", "SalesDate"],
        candidate_keys=[["SalesId"]],
        primary_key=["SalesId"],
        fds=["SalesId -> CustomerId, SalesDate"],
    )
    params.update(overrides)
    return Table.define(**params)


def test_valid_schema_is_built():
    schema = build_schema([sales_table()])
    table = schema.table("Sales")
    assert table.attribute_names == ("SalesId", "CustomerId", "SalesDate")
    assert table.primary_key == frozenset({"SalesId"})
    assert not table.keys_derived


def test_schema_values_are_immutable():
    schema = build_schema([sales_table()])
    with pytest.raises(dataclasses.FrozenInstanceError):
        schema.tables[0].name = "Other"
    with pytest.raises(dataclasses.FrozenInstanceError):
        schema.tables[0].fds[0].dependent = frozenset()


def test_parse_functional_dependency_text():
    parsed = FunctionalDependency.parse("SalesId, LineItemId -> Qty")
    assert parsed.determinant == frozenset({"SalesId", "LineItemId"})
    assert parsed.dependent == frozenset({"Qty"})
    assert str(parsed) == "{LineItemId, SalesId} -> {Qty}"


def test_unparseable_dependency_is_schema_error():
    with pytest.raises(SchemaError):
        FunctionalDependency.parse("SalesId SalesDate")


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"attributes": []}, "has no attributes"),
        ({"attributes": ["SalesId", "SalesId"], "fds": []}, "more than once"),
        ({"candidate_keys": [["OrderId"]], "primary_key": None}, "undeclared {OrderId}"),
        ({"fds": ["SalesId -> Total"]}, "undeclared {Total}"),
        ({"candidate_keys": [["SalesId"]], "primary_key": ["CustomerId"]}, "is not a declared candidate key"),
        ({"candidate_keys": [[]], "primary_key": None}, "empty candidate key"),
        ({"candidate_keys": [["SalesId"], ["SalesId"]]}, "same candidate key more than once"),
        ({"fds": ["SalesId -> "]}, "determines nothing"),
    ],
)
def test_structural_problems(overrides, fragment):
    with pytest.raises(SchemaError) as excinfo:
        build_schema([sales_table(**overrides)])
    assert any(fragment in problem for problem in excinfo.value.problems)


def test_every_problem_is_collected():
    broken = [
        Table.define("Empty", []),
        sales_table(fds=["SalesId -> Total"]),
    ]
    with pytest.raises(SchemaError) as excinfo:
        build_schema(broken)
    assert len(excinfo.value.problems) == 2


def test_duplicate_table_names():
    with pytest.raises(SchemaError, match="declared more than once"):
        build_schema([sales_table(), sales_table()])


def test_candidate_key_must_determine_the_table():
    table = sales_table(candidate_keys=[["SalesId"], ["CustomerId"]], fds=[])
    with pytest.raises(SchemaError, match="does not determine"):
        build_schema([table])


def test_alternate_key_backed_by_dependency_is_valid():
    table = sales_table(candidate_keys=[["SalesId"], ["CustomerId"]], fds=["CustomerId -> SalesId"])
    schema = build_schema([table])
    assert frozenset({"CustomerId"}) in schema.tables[0].candidate_keys


def test_candidate_key_must_be_minimal():
    table = sales_table(
        candidate_keys=[["SalesId", "CustomerId"]],
        primary_key=["SalesId", "CustomerId"],
        fds=["SalesId -> CustomerId, SalesDate"],
    )
    with pytest.raises(SchemaError, match="not minimal"):
        build_schema([table])


def test_keys_are_derived_when_none_declared():
    table = Table.define(
        "CustomersProducts",
        ["CustomerName", "CustomerPhone", "ProductName", "Price"],
        fds=["CustomerName -> CustomerPhone", "ProductName -> Price"],
    )
    derived = build_schema([table]).tables[0]
    assert derived.keys_derived
    assert derived.candidate_keys == (frozenset({"CustomerName", "ProductName"}),)
    assert derived.anchor_key is None


def test_key_derivation_limit(monkeypatch):
    monkeypatch.setitem(CONFIG["LIMITS"], "MAX_DERIVED_KEY_ATTRIBUTES", 1)
    table = Table.define("Wide", ["A", "B", "C"], fds=["A -> B", "B -> C"])
    with pytest.raises(SchemaError, match="declare candidate keys explicitly"):
        build_schema([table])


def test_prime_and_non_prime_attributes():
    table = Table.define(
        "SalesLineItems",
        ["SalesId", "LineItemId", Attribute("Notes", is_multivalued=True), "Qty"],
        candidate_keys=[["SalesId", "LineItemId"]],
    )
    assert table.prime_attributes == frozenset({"SalesId", "LineItemId"})
    assert table.non_prime_attributes == ("Notes", "Qty")


class TestForeignKeys:
    def customers(self):
        return Table.define("Customers", ["CustomerId", "Name"], candidate_keys=[["CustomerId"]])

    def test_valid_reference(self):
        fk = ForeignKey("Sales", ("CustomerId",), "Customers", ("CustomerId",))
        schema = build_schema([sales_table(), self.customers()], [fk])
        assert schema.foreign_keys == (fk,)

    @pytest.mark.parametrize(
        "fk, fragment",
        [
            (ForeignKey("Sales", ("CustomerId",), "Clients", ("CustomerId",)), "unknown table 'Clients'"),
            (ForeignKey("Orders", ("CustomerId",), "Customers", ("CustomerId",)), "unknown table 'Orders'"),
            (ForeignKey("Sales", ("ClientId",), "Customers", ("CustomerId",)), "undeclared {ClientId}"),
            (ForeignKey("Sales", ("CustomerId",), "Customers", ("Name",)), "does not reference a candidate key"),
            (ForeignKey("Sales", ("CustomerId", "SalesId"), "Customers", ("CustomerId",)), "mismatched"),
        ],
    )
    def test_invalid_reference(self, fk, fragment):
        with pytest.raises(SchemaError) as excinfo:
            build_schema([sales_table(), self.customers()], [fk])
        assert any(fragment in problem for problem in excinfo.value.problems)
