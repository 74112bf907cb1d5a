"""Error kinds raised by the inventory core.

Each kind carries a stable ``code`` so the HTTP layer can translate it
without string matching. Extra keyword context is kept on ``context`` for
logging and response bodies.
"""


class InventoryError(Exception):
    code = "inventory_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


class NotFound(InventoryError):
    """Unknown or inactive warehouse, product, or unknown transfer."""

    code = "not_found"


class InvalidTransition(InventoryError):
    """Transfer state machine violation."""

    code = "invalid_transition"


class InsufficientStock(InventoryError):
    """The operation would drive quantity, reserved or available below zero."""

    code = "insufficient_stock"


class InvalidArgument(InventoryError):
    code = "invalid_argument"


class ConflictRetryable(InventoryError):
    """Lost a write race on the ledger; retry the whole logical operation."""

    code = "conflict_retryable"
