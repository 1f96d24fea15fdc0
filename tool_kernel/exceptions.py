"""
Typed Exception Hierarchy for the Tool Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ToolKernelError and carry two class attributes:

  code  -- machine-readable, specific ("TOOL_NOT_FOUND", "TOOL_RETIRED", ...)
  kind  -- one of five ErrorKind categories used by the public result type

    ToolKernelError (base)
    |
    +-- ValidationError                 kind=VALIDATION
    |   +-- InvalidQuantityError
    |   +-- InvalidCostError
    |   +-- InvalidStateError
    |   +-- InvalidCodeError
    |
    +-- NotFoundError                   kind=NOT_FOUND
    |   +-- ToolNotFoundError
    |   +-- CatalogItemNotFoundError
    |   +-- WorkOrderNotFoundError
    |
    +-- DuplicateCodeError              kind=DUPLICATE_CODE
    |
    +-- StateTransitionError            kind=STATE_TRANSITION
    |   +-- ToolRetiredError
    |   +-- InvalidToolTransitionError
    |   +-- ToolNotMountedError
    |   +-- ImmutabilityViolationError
    |
    +-- TransactionError                kind=TRANSACTION
        +-- TransactionTimeoutError
        +-- LedgerIntegrityError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind            | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_QUANTITY            | Quantity <= 0, non-finite, or a float
                | INVALID_COST                | Negative or missing initial cost
                | INVALID_STATE               | Unknown state / wrong state for operation
                | INVALID_CODE                | Empty tool code
----------------|-----------------------------|-----------------------------------------
Not found       | TOOL_NOT_FOUND              | Tool id / code doesn't exist
                | CATALOG_ITEM_NOT_FOUND      | Catalog reference doesn't resolve
                | WORK_ORDER_NOT_FOUND        | Work order id doesn't exist
----------------|-----------------------------|-----------------------------------------
Duplicate       | DUPLICATE_TOOL_CODE         | Tool code already registered
----------------|-----------------------------|-----------------------------------------
Transition      | TOOL_RETIRED                | Operation on a BROKEN/WORN/LOST tool
                | INVALID_TOOL_TRANSITION     | Edge not in the state machine
                | TOOL_NOT_MOUNTED            | Usage against an unmounted tool
                | IMMUTABILITY_VIOLATION      | Usage record / retired tool modified
----------------|-----------------------------|-----------------------------------------
Transaction     | TRANSACTION_FAILED          | Deadlock, constraint violation, driver
                | TRANSACTION_TIMEOUT         | Lock or statement timeout exceeded
                | LEDGER_INTEGRITY            | Usage sum != accumulated life

TransactionError is the only retryable kind: the failed transaction was
rolled back as a whole, so re-issuing the same operation is safe.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a kernel failure, surfaced in OperationResult."""

    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    DUPLICATE_CODE = "duplicate_code"
    STATE_TRANSITION = "state_transition_error"
    TRANSACTION = "transaction_error"


class ToolKernelError(Exception):
    """
    Base exception for all tool kernel errors.

    All subclasses must have `code` and `kind` class attributes.
    """

    code: str = "TOOL_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.TRANSACTION

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSACTION


# Validation


class ValidationError(ToolKernelError):
    """Malformed or out-of-range input."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidQuantityError(ValidationError):
    """Quantity is not a positive, finite fixed-point value."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidCostError(ValidationError):
    """Monetary amount is negative, missing, or not fixed-point."""

    code: str = "INVALID_COST"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidStateError(ValidationError):
    """State value is unknown or not acceptable for this operation."""

    code: str = "INVALID_STATE"

    def __init__(self, state: str, reason: str):
        self.state = state
        self.reason = reason
        super().__init__(f"Invalid state '{state}': {reason}")


class InvalidCodeError(ValidationError):
    """Tool code is empty or not a string."""

    code: str = "INVALID_CODE"

    def __init__(self, tool_code: object):
        self.tool_code = tool_code
        super().__init__("Tool code must be a non-empty string")


# Not found


class NotFoundError(ToolKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class ToolNotFoundError(NotFoundError):
    code: str = "TOOL_NOT_FOUND"

    def __init__(self, tool_ref: str):
        self.tool_ref = tool_ref
        super().__init__(f"Tool instance not found: {tool_ref}")


class CatalogItemNotFoundError(NotFoundError):
    code: str = "CATALOG_ITEM_NOT_FOUND"

    def __init__(self, catalog_item_ref: str):
        self.catalog_item_ref = catalog_item_ref
        super().__init__(f"Catalog item not found: {catalog_item_ref}")


class WorkOrderNotFoundError(NotFoundError):
    code: str = "WORK_ORDER_NOT_FOUND"

    def __init__(self, work_order_id: str):
        self.work_order_id = work_order_id
        super().__init__(f"Work order not found: {work_order_id}")


# Duplicate code


class DuplicateCodeError(ToolKernelError):
    """A tool with the same code is already registered."""

    code: str = "DUPLICATE_TOOL_CODE"
    kind: ErrorKind = ErrorKind.DUPLICATE_CODE

    def __init__(self, tool_code: object):
        self.tool_code = tool_code
        super().__init__(f"Tool code already exists: {tool_code}")


# State transitions


class StateTransitionError(ToolKernelError):
    """Operation is invalid for the tool's current lifecycle state."""

    code: str = "STATE_TRANSITION_ERROR"
    kind: ErrorKind = ErrorKind.STATE_TRANSITION


class ToolRetiredError(StateTransitionError):
    """
    Tool is in a terminal state (BROKEN, WORN, LOST).

    Terminal states are absorbing: no mounting, no production, and no
    second reconciliation.
    """

    code: str = "TOOL_RETIRED"

    def __init__(self, tool_id: str, state: str, operation: str):
        self.tool_id = tool_id
        self.state = state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} tool {tool_id}: tool is retired ({state})"
        )


class InvalidToolTransitionError(StateTransitionError):
    code: str = "INVALID_TOOL_TRANSITION"

    def __init__(self, tool_id: str, from_state: str, to_state: str, reason: str = ""):
        self.tool_id = tool_id
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        message = f"Tool {tool_id} cannot move from {from_state} to {to_state}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ToolNotMountedError(StateTransitionError):
    code: str = "TOOL_NOT_MOUNTED"

    def __init__(self, tool_id: str, state: str):
        self.tool_id = tool_id
        self.state = state
        super().__init__(
            f"Tool {tool_id} is not mounted on a machine (state {state})"
        )


class ImmutabilityViolationError(StateTransitionError):
    """Attempted to modify a usage record or a retired tool."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Transactions


class TransactionError(ToolKernelError):
    """
    Underlying transactional failure (deadlock, constraint violation at
    commit, driver error). The transaction was rolled back; safe to retry.
    """

    code: str = "TRANSACTION_FAILED"
    kind: ErrorKind = ErrorKind.TRANSACTION

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Transaction failed during {operation}: {reason}")


class TransactionTimeoutError(TransactionError):
    code: str = "TRANSACTION_TIMEOUT"


class LedgerIntegrityError(TransactionError):
    """Sum of usage quantities does not match the tool's accumulated life."""

    code: str = "LEDGER_INTEGRITY"

    def __init__(self, tool_id: str, accumulated_life: str, ledger_total: str):
        self.tool_id = tool_id
        self.accumulated_life = accumulated_life
        self.ledger_total = ledger_total
        super().__init__(
            "finalize_tool_life",
            f"tool {tool_id} accumulated life {accumulated_life} "
            f"does not match usage ledger total {ledger_total}",
        )
