import json

import pytest

from normalization_demo import demo_schema
from schema_normal_forms import NormalizationChecker, main


def write(tmp_path, doc):
    path = tmp_path / "schema.json"
    path.write_text(json.dumps(doc))
    return str(path)


CLEAN = {
    "tables": [
        {
            "name": "Sales",
            "attributes": ["SalesId", "CustomerId", "SalesDate"],
            "primary_key": ["SalesId"],
        }
    ]
}

TRANSITIVE = {
    "tables": [
        {
            "name": "Sales",
            "attributes": ["SalesId", "CustomerId", "CustomerName", "CustomerPhone", "SalesDate"],
            "primary_key": ["SalesId"],
            "functional_dependencies": ["CustomerId -> CustomerName, CustomerPhone"],
        }
    ]
}


def test_exit_zero_when_everything_is_3nf(tmp_path, capsys):
    assert main([write(tmp_path, CLEAN)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["tables"][0]["highest_normal_form"] == "3NF"


def test_exit_one_on_violations(tmp_path, capsys):
    assert main([write(tmp_path, TRANSITIVE)]) == 1
    out = json.loads(capsys.readouterr().out)
    assert out["tables"][0]["violations"][0]["kind"] == "TransitiveDependency"


def test_exit_two_on_malformed_input(tmp_path, capsys):
    doc = {"tables": [{"name": "Sales", "attributes": ["SalesId"], "primary_key": ["OrderId"]}]}
    assert main([write(tmp_path, doc)]) == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[ERROR] Malformed schema" in captured.err
    assert "undeclared {OrderId}" in captured.err


def test_exit_two_on_missing_file(tmp_path):
    assert main([str(tmp_path / "nope.json")]) == 2


def test_markdown_format(tmp_path, capsys):
    main([write(tmp_path, TRANSITIVE), "--format", "markdown"])
    out = capsys.readouterr().out
    assert out.startswith("# Normal Form Report")
    assert "| TransitiveDependency |" in out


def test_output_artifacts(tmp_path, capsys):
    out_dir = tmp_path / "out"
    assert main([write(tmp_path, TRANSITIVE), "--output", str(out_dir)]) == 1

    (run_dir,) = list(out_dir.iterdir())
    assert run_dir.name.startswith("run_")
    manifest = json.loads((run_dir / "manifest.json").read_text())
    assert manifest == {"tables": [{"table": "Sales", "highest_normal_form": "2NF"}], "exit_code": 1}
    assert (run_dir / "tables" / "Sales.json").exists()
    assert (run_dir / "report.md").read_text().startswith("# Normal Form Report")
    summary = (run_dir / "summary.csv").read_text().splitlines()
    assert summary[0] == "table,highest_normal_form,violations,kinds"
    assert summary[1] == "Sales,2NF,1,TransitiveDependency"


def test_metadata_option(capsys):
    assert main(["--metadata", "normalization_demo:AFTER"]) == 0


def test_source_is_required():
    with pytest.raises(SystemExit):
        main([])


class TestLessonDemo:
    def test_before_design_reproduces_each_violation(self):
        report = NormalizationChecker(demo_schema("before")).run()
        verdicts = {t.table_name: t.highest_normal_form for t in report.tables}

        assert verdicts == {
            "CustomersProducts": "1NF",
            "Customers": "Unnormalized",
            "BadDesignSales": "Unnormalized",
            "SalesLineItems": "1NF",
            "Sales": "2NF",
        }
        assert report.table("CustomersProducts").keys_derived
        assert len(report.table("BadDesignSales").violations) == 2
        assert report.exit_code == 1

    def test_after_design_is_fully_normalized(self):
        report = NormalizationChecker(demo_schema("after")).run()

        assert all(t.highest_normal_form == "3NF" for t in report.tables)
        assert report.exit_code == 0
        assert report.bridge_tables == {"SalesLineItems": ("Sales", "Products")}
        kinds = {(r.foreign_key.table, r.foreign_key.ref_table): r.kind for r in report.relationships}
        assert kinds[("EmployeeSensitiveData", "Employees")] == "one-to-one"
        assert kinds[("Products", "Categories")] == "one-to-many"

    def test_demo_flag(self, capsys):
        assert main(["--demo", "before"]) == 1
        assert main(["--demo", "after"]) == 0
