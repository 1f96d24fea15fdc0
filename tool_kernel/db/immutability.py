"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, we raise ImmutabilityViolationError and the flush is
aborted. The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                       | Rule
----------------|--------------------------------------|-------------------------------
UsageRecord     | ALWAYS (from creation)               | Append-only usage ledger
ToolInstance    | After state is BROKEN / WORN / LOST  | Retired tools are frozen
ToolInstance    | accumulated_life, always             | Wear never decreases

updated_at is audit metadata and may change on any record.

Bulk ``update()``/``delete()`` statements bypass mapper events; the kernel
never issues them against these tables.

===============================================================================
USAGE
===============================================================================

Called by Database.create_tables(), or directly:

    from tool_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from tool_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from decimal import Decimal

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from tool_kernel.exceptions import ImmutabilityViolationError
from tool_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_TERMINAL_STATE_VALUES = frozenset({"broken", "worn", "lost"})
_AUDIT_FIELDS = frozenset({"updated_at"})


def _state_value(state) -> str:
    return getattr(state, "value", state)


def _block(entity_type: str, entity_id, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_usage_record_immutability(mapper, connection, target):
    """Prevent any updates to UsageRecord rows."""
    from tool_kernel.models.usage_record import UsageRecord

    if not isinstance(target, UsageRecord):
        return

    # before_update also fires for rows flagged dirty with no net change
    changed = [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]
    if not changed:
        return

    _block(
        "UsageRecord",
        target.id,
        "UPDATE",
        "Usage records are append-only and cannot be modified",
    )


def _check_usage_record_delete(mapper, connection, target):
    """Prevent deletion of UsageRecord rows."""
    from tool_kernel.models.usage_record import UsageRecord

    if not isinstance(target, UsageRecord):
        return

    _block(
        "UsageRecord",
        target.id,
        "DELETE",
        "Usage records are append-only and cannot be deleted",
    )


def _check_tool_instance_immutability(mapper, connection, target):
    """
    Prevent modification of retired tools and decreases of accumulated life.

    The transition INTO a terminal state is the retirement itself and is
    allowed.  Once the tool was terminal before this flush, every field other
    than the audit timestamp is frozen.
    """
    from tool_kernel.models.tool_instance import ToolInstance

    if not isinstance(target, ToolInstance):
        return

    life_history = get_history(target, "accumulated_life")
    if life_history.deleted and life_history.added:
        old_life = life_history.deleted[0]
        new_life = life_history.added[0]
        if old_life is not None and new_life is not None:
            if Decimal(str(new_life)) < Decimal(str(old_life)):
                _block(
                    "ToolInstance",
                    target.id,
                    "UPDATE",
                    f"accumulated_life cannot decrease ({old_life} -> {new_life})",
                    field="accumulated_life",
                )

    state_history = get_history(target, "state")
    if state_history.deleted:
        was_terminal = _state_value(state_history.deleted[0]) in _TERMINAL_STATE_VALUES
    elif not state_history.added:
        was_terminal = _state_value(target.state) in _TERMINAL_STATE_VALUES
    else:
        was_terminal = False

    if not was_terminal:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "ToolInstance",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on retired tool",
                field=attr.key,
            )


def _check_tool_instance_delete(mapper, connection, target):
    """Prevent deletion of tools that have usage history or are retired."""
    from tool_kernel.models.tool_instance import ToolInstance

    if not isinstance(target, ToolInstance):
        return

    if _state_value(target.state) in _TERMINAL_STATE_VALUES:
        _block(
            "ToolInstance",
            target.id,
            "DELETE",
            "Retired tools cannot be deleted",
        )

    if target.accumulated_life and Decimal(str(target.accumulated_life)) > 0:
        _block(
            "ToolInstance",
            target.id,
            "DELETE",
            "Tools with recorded usage cannot be deleted",
        )


_LISTENERS = (
    ("UsageRecord", "before_update", _check_usage_record_immutability),
    ("UsageRecord", "before_delete", _check_usage_record_delete),
    ("ToolInstance", "before_update", _check_tool_instance_immutability),
    ("ToolInstance", "before_delete", _check_tool_instance_delete),
)


def _models() -> dict:
    from tool_kernel.models.tool_instance import ToolInstance
    from tool_kernel.models.usage_record import UsageRecord

    return {"ToolInstance": ToolInstance, "UsageRecord": UsageRecord}


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are not added twice.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, listener_fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
