import concurrent.futures as cf
from dataclasses import dataclass, field
from typing import Mapping, Sequence

from orchestrator.subrecord_reconciler import SubRecordReconciler
from orchestrator.user_context import RecordOutcome
from utils.logger import get_logger

Logger = get_logger("batch_runner")


@dataclass(frozen=True)
class FailedRow:
    row_number: int
    row: dict
    reason: str

    def to_dict(self):
        return {**self.row, "validationMessage": self.reason}


@dataclass(frozen=True)
class BatchResult:
    total_count: int
    success_count: int
    failure_count: int
    failed_rows: list = field(default_factory=list)

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[RecordOutcome]):
        ordered = sorted(outcomes, key=lambda o: o.row_number)
        failed_rows = [FailedRow(o.row_number, o.row, o.reason) for o in ordered if not o.success]
        return cls(
            total_count=len(ordered),
            success_count=len(ordered) - len(failed_rows),
            failure_count=len(failed_rows),
            failed_rows=failed_rows,
        )


class BatchRunner:
    """
    Runs SubRecordReconciler.reconcile_record over every row of a batch with at
    most concurrency_limit rows in flight. Each row is attempted exactly once,
    completion order across rows is not guaranteed, and a failing row never
    stops the batch: run() collects one RecordOutcome per row and does not raise
    for row level errors.
    """

    def __init__(self, reconciler: SubRecordReconciler, concurrency_limit: int = 25):
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")
        self.reconciler = reconciler
        self.concurrency_limit = concurrency_limit

    def _run_row(self, row_number: int, row: dict, organization_id: str) -> RecordOutcome:
        try:
            return self.reconciler.reconcile_record(row_number, row, organization_id)
        except Exception as e:
            Logger.error(f"Unexpected error escaped row {row_number}: {e}")
            return RecordOutcome.failed(row_number, row, str(e) or e.__class__.__name__)

    def run(self, rows: Sequence[Mapping], organization_id: str = None) -> BatchResult:
        rows = [dict(row) for row in rows]
        if not rows:
            Logger.info("No rows to process")
            return BatchResult(0, 0, 0, [])

        Logger.info(f"Processing {len(rows)} rows with concurrency {self.concurrency_limit}")
        outcomes = []
        with cf.ThreadPoolExecutor(
            max_workers=self.concurrency_limit, thread_name_prefix="row-worker"
        ) as executor:
            futs = {
                executor.submit(self._run_row, row_number, row, organization_id): row_number
                for row_number, row in enumerate(rows, start=1)
            }
            for fut in cf.as_completed(futs):
                row_number = futs[fut]
                try:
                    outcomes.append(fut.result())
                except Exception as e:
                    outcomes.append(RecordOutcome.failed(row_number, rows[row_number - 1], str(e)))

        result = BatchResult.from_outcomes(outcomes)
        Logger.info(
            f"Batch finished: total {result.total_count}, success {result.success_count}, "
            f"failed {result.failure_count}"
        )
        return result
