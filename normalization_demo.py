"""Lesson designs for the normalization walkthrough, as SQLAlchemy tables.

Two MetaData collections mirror the lesson:

1. `BEFORE` holds the designs the lesson calls out as broken (a table about two
   subjects, a multi-part address, multi-valued product lists, a sales date on
   the line items, customer details on the sales header).
2. `AFTER` holds the corrected designs plus the one-to-one, one-to-many and
   bridge table examples.

Functional dependencies the lesson states in prose are recorded in
`Table.info["functional_dependencies"]`. Nothing here creates an engine.

Usage: `python normalization_demo.py before` (or `after`).
"""
from __future__ import annotations

import argparse
import sys

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, MetaData, Numeric, String, Table

from schema_normal_forms import Schema, main as check_main, schema_from_metadata


BEFORE = MetaData()

Table(
    "CustomersProducts",
    BEFORE,
    Column("CustomerName", String(50)),
    Column("CustomerPhone", String(50)),
    Column("ProductName", String(50)),
    Column("Price", String(50)),
    info={"functional_dependencies": ["CustomerName -> CustomerPhone", "ProductName -> Price"]},
)

Table(
    "Customers",
    BEFORE,
    Column("CustomerId", Integer, primary_key=True),
    Column("CustomerName", String(50)),
    Column("CustomerPhone", String(50)),
    # '123 Main, Bellevue, WA, 98223'
    Column("CustomerAddress", String(200), info={"composite": True}),
)

Table(
    "BadDesignSales",
    BEFORE,
    Column("SalesId", Integer, primary_key=True),
    Column("CustomerId", Integer),
    # '100, 101, 102' and '2, 5, 3'
    Column("ProductId", String(50), info={"multivalued": True}),
    Column("Qty", String(50), info={"multivalued": True}),
)

Table(
    "SalesLineItems",
    BEFORE,
    Column("SalesId", Integer, primary_key=True),
    Column("LineItemId", Integer, primary_key=True),
    Column("SalesDate", Date),
    Column("ProductId", Integer),
    Column("Qty", Integer),
    info={"functional_dependencies": ["SalesId -> SalesDate"]},
)

Table(
    "Sales",
    BEFORE,
    Column("SalesId", Integer, primary_key=True),
    Column("CustomerId", Integer),
    Column("CustomerName", String(50)),
    Column("CustomerPhone", String(50)),
    Column("SalesDate", Date),
    info={
        "functional_dependencies": [
            "SalesId -> CustomerId, SalesDate",
            "CustomerId -> CustomerName, CustomerPhone",
        ]
    },
)


AFTER = MetaData()

Table(
    "Customers",
    AFTER,
    Column("CustomerId", Integer, primary_key=True),
    Column("FirstName", String(50)),
    Column("LastName", String(50)),
    Column("Phone", String(50)),
    Column("Address", String(100)),
    Column("City", String(50)),
    Column("State", String(2)),
    Column("Zip", String(5)),
)

Table(
    "Categories",
    AFTER,
    Column("CategoryId", Integer, primary_key=True),
    Column("CategoryName", String(50)),
    Column("Description", String(200)),
)

Table(
    "Products",
    AFTER,
    Column("ProductId", Integer, primary_key=True),
    Column("ProductName", String(50)),
    Column("Price", Numeric(10, 2)),
    Column("CategoryId", Integer, ForeignKey("Categories.CategoryId")),
)

Table(
    "Sales",
    AFTER,
    Column("SalesId", Integer, primary_key=True),
    Column("CustomerId", Integer, ForeignKey("Customers.CustomerId")),
    Column("SalesDate", Date),
)

# Bridge between Sales and Products.
Table(
    "SalesLineItems",
    AFTER,
    Column("SalesId", Integer, ForeignKey("Sales.SalesId"), primary_key=True),
    Column("LineItemId", Integer, primary_key=True),
    Column("ProductId", Integer, ForeignKey("Products.ProductId")),
    Column("Qty", Integer),
)

Table(
    "Employees",
    AFTER,
    Column("EmployeeId", Integer, primary_key=True),
    Column("FirstName", String(50)),
    Column("LastName", String(50)),
    Column("Phone", String(50)),
    Column("HireDate", DateTime),
    Column("ManagerId", Integer, ForeignKey("Employees.EmployeeId")),
)

# One-to-one split of Employees for security.
Table(
    "EmployeeSensitiveData",
    AFTER,
    Column("EmployeeId", Integer, ForeignKey("Employees.EmployeeId"), primary_key=True),
    Column("SSNumber", String(50), unique=True),
    Column("Salary", Numeric(19, 4)),
    Column("Address", String(100)),
    Column("City", String(50)),
    Column("State", String(2)),
    Column("Zip", String(5)),
    info={"functional_dependencies": ["SSNumber -> EmployeeId"]},
)


DESIGNS = {"before": BEFORE, "after": AFTER}


def demo_schema(design: str) -> Schema:
    return schema_from_metadata(DESIGNS[design])


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check the normalization lesson designs.")
    parser.add_argument("design", nargs="?", choices=sorted(DESIGNS), default="before")
    parser.add_argument("--format", choices=["json", "markdown"], default="markdown")
    return parser.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    sys.exit(check_main(["--demo", args.design, "--format", args.format]))
