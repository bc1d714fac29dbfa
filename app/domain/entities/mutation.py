"""Entity mutation domain entity.

One change event reported by the data platform for a tracked table
(insert/update/delete with before and after snapshots).
"""

from dataclasses import dataclass, field
from typing import Any

from app.domain.entities.tracked import entity_type_for_table
from app.shared.enums import MutationType
from app.shared.utils.generators import compute_event_key


@dataclass(frozen=True)
class EntityMutation:
    """Immutable mutation: type, table, snapshots and optional event id."""

    event_type: MutationType
    table_name: str
    after: dict[str, Any] | None = None
    before: dict[str, Any] | None = None
    event_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def entity_type(self) -> str | None:
        """Entity type of the mutated table, or None when untracked."""
        return entity_type_for_table(self.table_name)

    @property
    def entity_id(self) -> str | None:
        """Id of the mutated record (from after, else before)."""
        for snapshot in (self.after, self.before):
            if snapshot and snapshot.get("id") is not None:
                return str(snapshot["id"])
        return None

    def event_key(self) -> str:
        """Identity of this mutation for idempotent enqueue.

        Uses the platform-supplied event_id when present; otherwise a SHA-256
        over the canonical mutation so redeliveries map to the same key.
        """
        if self.event_id:
            return self.event_id
        return compute_event_key(
            {
                "event_type": self.event_type.value,
                "table_name": self.table_name,
                "before": self.before,
                "after": self.after,
            }
        )
