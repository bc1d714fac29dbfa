"""Tracked entity types: the tables whose mutations can trigger workflows.

Maps source table names to entity types and lists the record fields a
trigger condition may reference for each entity type.
"""

from app.domain.exceptions import ValidationException

# Source table -> entity type. Mutations on other tables are ignored.
TRACKED_TABLES: dict[str, str] = {
    "jobs": "job",
    "clients": "client",
    "invoices": "invoice",
    "estimates": "estimate",
}

ENTITY_FIELDS: dict[str, frozenset[str]] = {
    "job": frozenset({
        "id", "title", "description", "status", "job_type", "lead_source",
        "client_id", "technician_id", "date", "schedule_start", "schedule_end",
        "revenue", "address", "tags", "notes", "created_by_automation",
        "created_at", "updated_at", "client",
    }),
    "client": frozenset({
        "id", "name", "email", "phone", "status", "type", "address", "city",
        "state", "zip", "tags", "notes", "created_by_automation",
        "created_at", "updated_at",
    }),
    "invoice": frozenset({
        "id", "invoice_number", "status", "total", "amount_paid", "balance",
        "due_date", "client_id", "job_id", "notes", "created_by_automation",
        "created_at", "updated_at", "client",
    }),
    "estimate": frozenset({
        "id", "estimate_number", "status", "total", "valid_until",
        "client_id", "job_id", "notes", "created_by_automation",
        "created_at", "updated_at", "client",
    }),
}

# Top-level trigger_data keys that are scalars (no sub-path allowed).
_SCALAR_ROOTS = frozenset({"entity_id", "entity_type", "old_status", "new_status"})
# Top-level trigger_data keys that hold record snapshots.
_RECORD_ROOTS = frozenset({"record", "previous"})


def entity_type_for_table(table_name: str | None) -> str | None:
    """Return the entity type for a source table, or None when untracked."""
    if not table_name:
        return None
    return TRACKED_TABLES.get(table_name)


def is_valid_condition_field(entity_type: str, field: str) -> bool:
    """Return whether a condition field path is addressable for the entity type.

    Valid paths are a scalar root (entity_id, old_status, ...) or
    record.<field>[.<sub>...] / previous.<field>[...] where <field> is a known
    field of the entity.
    """
    fields = ENTITY_FIELDS.get(entity_type)
    if fields is None or not field:
        return False
    parts = field.split(".")
    if parts[0] in _SCALAR_ROOTS:
        return len(parts) == 1
    if parts[0] in _RECORD_ROOTS:
        return len(parts) >= 2 and parts[1] in fields
    return False


def validate_entity_type(entity_type: str) -> None:
    """Raise ValidationException when entity_type is not tracked."""
    if entity_type not in ENTITY_FIELDS:
        raise ValidationException(
            f"Unsupported entity type '{entity_type}'; expected one of "
            f"{sorted(ENTITY_FIELDS)}",
            field="entity_type",
        )
