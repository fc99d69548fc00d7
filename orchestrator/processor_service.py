from dataclasses import dataclass, field
from enum import Enum
import json
from typing import Callable, Optional

from pydantic import ValidationError as SchemaValidationError

from api.ubahn_client import UbahnClient
from cache.message_counter import MessageCounter
from extractor.s3_storage import S3Storage
from extractor.spreadsheet_parser import parse_spreadsheet
from loader.failed_records_exporter import FailedRecordsExporter
from orchestrator.batch_runner import BatchResult, BatchRunner
from utils.exceptions import ValidationError
from utils.logger import get_logger, log_full_error
from validator.event.inbound_event import PENDING_STATUS, UPLOAD_RESOURCE, InboundEvent

Logger = get_logger("processor_service")


class PipelineState(str, Enum):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    ACKNOWLEDGED = "ACKNOWLEDGED"


TERMINAL_STATES = {PipelineState.REJECTED, PipelineState.SKIPPED, PipelineState.COMPLETED, PipelineState.FAILED}


@dataclass
class PipelineResult:
    states: list = field(default_factory=lambda: [PipelineState.RECEIVED])
    message_number: Optional[int] = None
    upload_id: Optional[str] = None
    batch_result: Optional[BatchResult] = None
    failed_records_key: Optional[str] = None
    error: Optional[str] = None
    acknowledged: bool = False

    def move_to(self, state: PipelineState):
        self.states.append(state)

    @property
    def state(self) -> PipelineState:
        return self.states[-1]

    @property
    def outcome(self) -> Optional[PipelineState]:
        """The terminal processing state, regardless of acknowledgment."""
        for state in reversed(self.states):
            if state in TERMINAL_STATES:
                return state
        return None


class ProcessorService:
    """
    Handles one upload event end to end:

    RECEIVED -> VALIDATED -> (SKIPPED | PROCESSING) -> (COMPLETED | FAILED) -> ACKNOWLEDGED

    - Undecodable, off-topic or schema-invalid messages are REJECTED.
    - Events whose resource is not "upload" or whose status is not "pending" are SKIPPED.
    - COMPLETED: the batch ran, whatever the number of failed rows; the status API
      gets status=completed and the key of the failed records report, if any.
    - FAILED: download, parse, export or status report raised; the status API gets
      status=failed with the error message.
    The acknowledge callback is invoked exactly once for every message, after
    processing, whatever the outcome.
    """

    def __init__(
        self,
        storage: S3Storage,
        batch_runner: BatchRunner,
        exporter: FailedRecordsExporter,
        status_client: UbahnClient,
        parser: Callable = parse_spreadsheet,
        message_counter: MessageCounter = None,
    ):
        self.storage = storage
        self.batch_runner = batch_runner
        self.exporter = exporter
        self.status_client = status_client
        self.parser = parser
        self.message_counter = message_counter or MessageCounter()

    @staticmethod
    def _decode(raw_message) -> dict:
        if isinstance(raw_message, dict):
            return raw_message
        try:
            if isinstance(raw_message, (bytes, bytearray)):
                raw_message = raw_message.decode("utf-8")
            message = json.loads(raw_message)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid message JSON: {e}") from e
        if not isinstance(message, dict):
            raise ValidationError("Message JSON must be an object")
        return message

    def handle(self, raw_message, topic: str = None, acknowledge: Callable[[], None] = None) -> PipelineResult:
        result = PipelineResult()
        try:
            message = self._decode(raw_message)

            if topic and message.get("topic") != topic:
                raise ValidationError(f"The message topic {message.get('topic')} doesn't match the Kafka topic {topic}.")

            payload = message.get("payload")
            if isinstance(payload, dict) and payload.get("resource") != UPLOAD_RESOURCE:
                Logger.info(f"The message payload resource {payload.get('resource')} is not \"upload\". Ignoring message.")
                result.move_to(PipelineState.SKIPPED)
                return result

            result.message_number = self.message_counter.next()
            Logger.debug(f"Current message count: {result.message_number}")

            try:
                event = InboundEvent.model_validate(message)
            except SchemaValidationError as e:
                raise ValidationError(f"Invalid message: {e}") from e
            result.move_to(PipelineState.VALIDATED)
            result.upload_id = event.payload.id

            if event.payload.status != PENDING_STATUS:
                Logger.info(f"Ignore upload {event.payload.id} since status is {event.payload.status}, not pending")
                result.move_to(PipelineState.SKIPPED)
                return result

            self._process(event, result)
        except ValidationError as e:
            Logger.error(f"Dropping message: {e}")
            result.error = str(e)
            result.move_to(PipelineState.REJECTED)
        except Exception as e:
            log_full_error(Logger, e, "Unexpected error while handling message")
            result.error = str(e)
            result.move_to(PipelineState.FAILED)
        finally:
            self._acknowledge(acknowledge, result)
        return result

    def _process(self, event: InboundEvent, result: PipelineResult):
        payload = event.payload
        result.move_to(PipelineState.PROCESSING)
        try:
            file = self.storage.download_file(payload.object_key)
            header, rows = self.parser(file)
            batch_result = self.batch_runner.run(rows, payload.organization_id)
            result.batch_result = batch_result

            status = {"status": "completed"}
            if batch_result.failure_count > 0:
                result.failed_records_key = self.exporter.export(batch_result, payload.object_key, header)
                status["failedRecordsObjectKey"] = result.failed_records_key
            self.status_client.update_process_status(payload.id, status)

            result.move_to(PipelineState.COMPLETED)
            Logger.info(
                f"process the record completed, id: {payload.id}, success count: {batch_result.success_count}, "
                f"fail count: {batch_result.failure_count}"
            )
        except Exception as e:
            result.error = str(e) or e.__class__.__name__
            result.move_to(PipelineState.FAILED)
            Logger.error(f"process the record failed, id: {payload.id}, err: {result.error}")
            try:
                self.status_client.update_process_status(payload.id, {"status": "failed", "info": result.error})
            except Exception as report_error:
                log_full_error(Logger, report_error, f"Unable to report failed status of upload {payload.id}")

    def _acknowledge(self, acknowledge: Optional[Callable[[], None]], result: PipelineResult):
        if acknowledge is None:
            return
        Logger.debug(f"Committing offset after processing message with count {result.message_number}")
        try:
            acknowledge()
        except Exception as e:
            log_full_error(Logger, e, "Unable to acknowledge message")
            return
        result.acknowledged = True
        result.move_to(PipelineState.ACKNOWLEDGED)
