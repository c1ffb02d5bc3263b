from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List, Type

from .models.base import DBSerializableModel
from .models.credits import CreditBalance
from .models.history import HistoryRecord
from .models.ledger import LedgerEntry
from .models.signup import SignupLog


MODEL_REGISTRY: List[Type[DBSerializableModel]] = [
    CreditBalance,
    HistoryRecord,
    SignupLog,
    LedgerEntry,
]

_SQL_TYPES = {
    "integer": "INTEGER",
    "number": "DOUBLE PRECISION",
    "boolean": "BOOLEAN",
    "string": "TEXT",
    "datetime": "TIMESTAMP",
    "object": "JSONB",
}


def generate_logical_schema() -> Dict[str, Any]:
    """Logical schema of every persisted model, keyed by collection name."""
    return {model.collection_name: model.db_schema() for model in MODEL_REGISTRY}


def render_sql_ddl(schema: Dict[str, Any]) -> str:
    """
    Small Postgres DDL renderer. Good enough to bootstrap a database; use a
    migration tool for anything beyond that.
    """
    statements: List[str] = []
    for table_name, spec in schema.items():
        pk = spec.get("primary_key") or "id"
        columns: List[str] = []
        for field_name, meta in spec["properties"].items():
            sql_type = _SQL_TYPES.get(meta["type"], "TEXT")
            nullable = "NOT NULL" if field_name in spec.get("required", []) else "NULL"
            columns.append(f'    "{field_name}" {sql_type} {nullable}')
        columns.append(f'    PRIMARY KEY ("{pk}")')
        statements.append(
            f'CREATE TABLE IF NOT EXISTS "{table_name}" (\n' + ",\n".join(columns) + "\n);"
        )

        for fields in spec.get("unique", []):
            name = f"{table_name}_{'_'.join(fields)}_key"
            cols = ", ".join(f'"{f}"' for f in fields)
            statements.append(
                f'CREATE UNIQUE INDEX IF NOT EXISTS "{name}" ON "{table_name}" ({cols});'
            )
        for index in spec.get("indexes", []):
            name = f"{table_name}_{'_'.join(f for f, _ in index)}_idx"
            cols = ", ".join(f'"{f}"' + (" DESC" if d < 0 else "") for f, d in index)
            statements.append(
                f'CREATE INDEX IF NOT EXISTS "{name}" ON "{table_name}" ({cols});'
            )
    return "\n\n".join(statements) + "\n"


def render_nosql_schema(schema: Dict[str, Any]) -> str:
    return json.dumps(schema, indent=2, default=str)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Generate DB schemas for the email vault service."
    )
    parser.add_argument(
        "--backend",
        choices=["sql", "nosql"],
        required=True,
        help="Type of schema to generate.",
    )
    args = parser.parse_args()

    schema = generate_logical_schema()
    if args.backend == "sql":
        print(render_sql_ddl(schema))
    else:
        print(render_nosql_schema(schema))


if __name__ == "__main__":
    main()
