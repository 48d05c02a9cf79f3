# Overview: Full-database export, destructive import and reset.

"""
Backup Service

export_data() -> {table_name: [row, ...]} for every table, rows in primary
key order, dates as ISO-8601 strings.

import_data(document) replaces the whole store:
1. Validate: the document must be an object with at least "products" and
   "users" lists, and every row must coerce to its table's column types.
   Nothing is touched when validation fails.
2. Under the write lock: drop and recreate every table, insert all rows,
   commit, save the snapshot.
3. If step 2 fails at any point the in-memory store is restored from the
   image taken just before it, so a failed import leaves the old data.

Documents exported by older versions are accepted: product rows may name
their category/unit instead of referencing ids, and user rows may carry a
plain password instead of a hash.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any

from ..extensions import db
from ..snapshot import dump_from, load_into
from ..validation import ValidationError, coerce_value
from . import auth_service, schema_service
from .concurrency import get_snapshot_store, run_write, write_lock

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("products", "users")


class ImportValidationError(ValidationError):
    """The import document was rejected before the store was modified."""


def _encode(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _tables():
    return list(db.metadata.sorted_tables)


def export_data() -> dict[str, list[dict]]:
    document = {}
    for table in _tables():
        pk = list(table.primary_key.columns)
        rows = db.session.execute(table.select().order_by(*pk)).mappings().all()
        document[table.name] = [{k: _encode(v) for k, v in row.items()} for row in rows]
    return document


def export_json(indent: int | None = 2) -> str:
    return json.dumps(export_data(), indent=indent, ensure_ascii=False)


def _parse_document(document) -> dict:
    if isinstance(document, (bytes, bytearray)):
        document = document.decode("utf-8")
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except ValueError as exc:
            raise ImportValidationError(f"Backup is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ImportValidationError("Backup must be an object keyed by table name")

    missing = [name for name in REQUIRED_TABLES if not isinstance(document.get(name), list)]
    if missing:
        raise ImportValidationError(f"Backup is missing required tables: {', '.join(missing)}")
    return document


def _legacy_product_refs(document: dict, row: dict) -> dict:
    """Map category/unit names (older exports) onto the referenced row ids."""
    for name_key, id_key, table in (("category", "category_id", "categories"), ("unit", "unit_id", "units")):
        if id_key in row or name_key not in row:
            continue
        name = row.get(name_key)
        match = next(
            (r for r in document.get(table) or [] if isinstance(r, dict) and r.get("name") == name),
            None,
        )
        row[id_key] = match.get("id") if match else None
    return row


def _prepare_rows(document: dict) -> dict[str, list[dict]]:
    """Coerce every row to column types. Raises before anything is destroyed."""
    known = {table.name: table for table in _tables()}
    ignored = sorted(set(document) - set(known))
    if ignored:
        logger.warning("Import ignores unknown tables: %s", ", ".join(ignored))

    log_totals: dict[int, float] = defaultdict(float)
    for entry in document.get("inventory_logs") or []:
        if isinstance(entry, dict) and entry.get("product_id") is not None:
            try:
                log_totals[int(entry["product_id"])] += float(entry.get("quantity") or 0)
            except (TypeError, ValueError):
                raise ImportValidationError("inventory_logs rows need numeric product_id and quantity")

    prepared: dict[str, list[dict]] = {}
    for name, table in known.items():
        rows = document.get(name) or []
        if not isinstance(rows, list):
            raise ImportValidationError(f"Table {name} must be a list of rows")
        columns = {c.key: c for c in table.columns}
        out = []
        for index, raw in enumerate(rows, start=1):
            if not isinstance(raw, dict):
                raise ImportValidationError(f"{name} row {index} is not an object")
            row = dict(raw)
            if name == "products":
                row = _legacy_product_refs(document, row)
            if name == "users" and not row.get("password_hash") and row.get("password"):
                row["password_hash"] = auth_service.hash_password(str(row["password"]))
            if name == "users" and isinstance(row.get("is_logged_in"), int):
                row["is_logged_in"] = bool(row["is_logged_in"])
            try:
                clean = {
                    key: coerce_value(columns[key], value)
                    for key, value in row.items()
                    if key in columns
                }
            except ValidationError as exc:
                raise ImportValidationError(f"{name} row {index}: {exc}") from exc
            if name == "products" and "seed_stock" not in clean and clean.get("stock") is not None:
                clean["seed_stock"] = clean["stock"] - log_totals.get(clean.get("id"), 0.0)
            out.append(clean)
        prepared[name] = out
    return prepared


def import_data(document) -> dict[str, int]:
    """
    Replace the whole store with the contents of a backup document.

    Returns:
        Row counts per table

    Raises:
        ImportValidationError: document rejected, store untouched
        Exception: replacement failed; the previous store has been restored
    """
    prepared = _prepare_rows(_parse_document(document))

    def _replace():
        db.session.remove()
        db.drop_all()
        db.create_all()
        for table in _tables():
            for row in prepared.get(table.name, []):
                db.session.execute(table.insert().values(**row))
        return {name: len(rows) for name, rows in prepared.items()}

    with write_lock:
        before = dump_from(db.engine)
        try:
            counts = run_write(_replace)
        except Exception:
            logger.exception("Import failed; restoring the previous store")
            db.session.remove()
            load_into(db.engine, before)
            raise

    logger.info("Imported backup: %s", counts)
    return counts


def reset_database(*, seed_demo: bool | None = None) -> None:
    """
    Discard all data and re-seed from defaults.

    The snapshot handle is invalidated before the file is removed, so no
    write can resurrect the old snapshot while the reset is in progress.
    """
    with write_lock:
        store = get_snapshot_store()
        store.reset()
        db.session.remove()
        db.drop_all()
        store.reopen()
        schema_service.ensure_schema(seed_demo=seed_demo)
    logger.warning("Store reset to defaults")
