from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class RecordOutcome:
    """
    Result of reconciling one row: either a success or a failure carrying the
    original row data and a human readable reason. Exactly one per row.
    """
    row_number: int
    row: dict
    success: bool
    reason: Optional[str] = None
    user_id: Optional[str] = None
    entity_status: dict = field(default_factory=dict)

    @classmethod
    def succeeded(cls, row_number: int, row: dict, user_id: str, entity_status: dict = None):
        return cls(row_number, row, True, None, user_id, dict(entity_status or {}))

    @classmethod
    def failed(cls, row_number: int, row: dict, reason: str, user_id: str = None, entity_status: dict = None):
        return cls(row_number, row, False, reason, user_id, dict(entity_status or {}))


class RecordExecutionContext:
    def __init__(self, row_number: int, row: dict):
        """Context for reconciling a single spreadsheet row.
        Attributes:
            row_number (int): 1-based position of the row among the parsed rows.
            row (dict): The original row data, kept for the failure report.
            user_id (str): Primary-system user id once the identity is resolved.
            errors (list): Error messages encountered during processing.
            entity_status (dict): Per sub-record status, e.g. {"skill": "CREATED",
            "achievement": "SKIPPED", "attribute1": "UPDATED"}.
        """
        self.row_number = row_number
        self.row = row
        self.user_id = None
        self.errors = []
        self.entity_status = {}

    def fail(self, msg: str):
        """Record an error message and mark the context as failed."""
        self.errors.append(msg)

    def ok(self, entity: str, status: str):
        """Mark the processing of an entity as successful with its status."""
        self.entity_status[entity] = status

    @property
    def has_errors(self):
        """Check if there are any recorded errors."""
        return len(self.errors) > 0

    def to_outcome(self) -> RecordOutcome:
        if self.has_errors:
            return RecordOutcome.failed(
                self.row_number, self.row, "; ".join(self.errors), self.user_id, self.entity_status
            )
        return RecordOutcome.succeeded(self.row_number, self.row, self.user_id, self.entity_status)
