import json
from io import BytesIO
from unittest.mock import MagicMock

import pandas as pd
import pytest

from cache.message_counter import MessageCounter
from conftest import full_row
from extractor.spreadsheet_parser import REQUIRED_HEADER
from loader.failed_records_exporter import FailedRecordsExporter
from orchestrator.batch_runner import BatchRunner
from orchestrator.processor_service import PipelineState, ProcessorService
from utils.exceptions import UpstreamError

TOPIC = "u-bahn.action.create"


def event(status="pending", resource="upload", **payload):
    return {
        "topic": TOPIC,
        "originator": "u-bahn-ui-api",
        "timestamp": "2020-05-16T02:58:58.053Z",
        "mime-type": "application/json",
        "payload": {"resource": resource, "objectKey": "batch1.xlsx", "status": status, "id": "upload-1", **payload},
    }


def spreadsheet(rows):
    columns = ["handle"] + REQUIRED_HEADER + ["attributeGroupName1", "attributeName1", "attributeValue1"]
    buffer = BytesIO()
    pd.DataFrame(rows, columns=columns).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


@pytest.fixture()
def storage():
    storage = MagicMock()
    storage.upload_file.side_effect = lambda bucket, key, body, content_type=None: key
    return storage


@pytest.fixture()
def service(storage, reconciler, ubahn_client):
    return ProcessorService(
        storage=storage,
        batch_runner=BatchRunner(reconciler, concurrency_limit=2),
        exporter=FailedRecordsExporter(storage, bucket="failed-records"),
        status_client=ubahn_client,
    )


def test_batch_with_one_bad_row_completes_with_failure_report(service, storage, status_api):
    storage.download_file.return_value = spreadsheet([
        full_row("user1"),
        full_row("user2", skillProviderName=None),
        full_row("user2", skillName="Java"),
    ])
    ack = MagicMock()

    result = service.handle(json.dumps(event()), topic=TOPIC, acknowledge=ack)

    storage.download_file.assert_called_once_with("batch1.xlsx")
    batch = result.batch_result
    assert (batch.total_count, batch.success_count, batch.failure_count) == (3, 2, 1)
    assert "skill provider name is missing" in batch.failed_rows[0].reason
    assert result.outcome == PipelineState.COMPLETED
    assert result.failed_records_key.startswith("batch1_errors_")
    assert status_api.calls == [
        ("patch", "/uploads/upload-1", {"status": "completed", "failedRecordsObjectKey": result.failed_records_key})
    ]
    assert storage.upload_file.call_args.args[0] == "failed-records"
    ack.assert_called_once_with()
    assert result.acknowledged
    assert result.states == [
        PipelineState.RECEIVED, PipelineState.VALIDATED, PipelineState.PROCESSING,
        PipelineState.COMPLETED, PipelineState.ACKNOWLEDGED,
    ]


def test_clean_batch_reports_completed_without_report_key(service, storage, status_api):
    storage.download_file.return_value = spreadsheet([full_row("user1")])

    result = service.handle(event(organizationId="org-1"), topic=TOPIC, acknowledge=MagicMock())

    assert result.outcome == PipelineState.COMPLETED
    assert status_api.calls == [("patch", "/uploads/upload-1", {"status": "completed"})]
    storage.upload_file.assert_not_called()


def test_non_pending_status_is_skipped(service, storage, status_api):
    ack = MagicMock()

    result = service.handle(json.dumps(event(status="done")), topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.SKIPPED
    storage.download_file.assert_not_called()
    assert status_api.calls == []
    ack.assert_called_once_with()


def test_other_resource_is_skipped(service, storage, status_api):
    ack = MagicMock()

    result = service.handle(json.dumps(event(resource="skill")), topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.SKIPPED
    assert result.message_number is None
    storage.download_file.assert_not_called()
    ack.assert_called_once_with()


def test_download_failure_reports_failed_and_acknowledges(service, storage, status_api):
    storage.download_file.side_effect = UpstreamError("download of batch1.xlsx failed: NoSuchKey")
    ack = MagicMock()

    result = service.handle(json.dumps(event()), topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.FAILED
    assert status_api.calls == [
        ("patch", "/uploads/upload-1", {"status": "failed", "info": "download of batch1.xlsx failed: NoSuchKey"})
    ]
    ack.assert_called_once_with()


def test_unreadable_file_is_a_batch_failure(service, storage, status_api):
    storage.download_file.return_value = b"not a workbook"

    result = service.handle(event(), topic=TOPIC, acknowledge=MagicMock())

    assert result.outcome == PipelineState.FAILED
    assert status_api.calls[0][2]["status"] == "failed"


def test_status_report_failure_is_retried_as_failed(service, storage, status_api):
    storage.download_file.return_value = spreadsheet([full_row("user1")])
    calls = []

    def patch(endpoint, json=None):
        calls.append(json)
        if json["status"] == "completed":
            raise UpstreamError("status api down")

    status_api.patch = patch
    ack = MagicMock()

    result = service.handle(event(), topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.FAILED
    assert calls == [{"status": "completed"}, {"status": "failed", "info": "status api down"}]
    ack.assert_called_once_with()


def test_failing_failed_status_report_still_acknowledges(service, storage, status_api):
    storage.download_file.side_effect = UpstreamError("no file")
    status_api.fail_on[("patch", "/uploads/upload-1")] = UpstreamError("status api down")
    ack = MagicMock()

    result = service.handle(event(), topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.FAILED
    ack.assert_called_once_with()


@pytest.mark.parametrize("raw", [
    b"{not json",
    b"\xff\xfe{bad",
    json.dumps([1, 2, 3]),
    json.dumps({**event(), "topic": "other.topic"}),
    json.dumps({k: v for k, v in event().items() if k != "originator"}),
    json.dumps({**event(), "payload": {"resource": "upload", "status": "pending"}}),
    json.dumps({k: v for k, v in event().items() if k != "payload"}),
])
def test_malformed_messages_are_rejected_and_acknowledged(service, storage, raw):
    ack = MagicMock()

    result = service.handle(raw, topic=TOPIC, acknowledge=ack)

    assert result.outcome == PipelineState.REJECTED
    storage.download_file.assert_not_called()
    ack.assert_called_once_with()


def test_legacy_url_payload_is_accepted(service, storage):
    storage.download_file.return_value = spreadsheet([full_row("user1")])
    message = event()
    message["payload"] = {"resource": "upload", "url": "s3://uploads/batch1.xlsx", "status": "pending", "id": 7}

    result = service.handle(message, topic=TOPIC, acknowledge=MagicMock())

    storage.download_file.assert_called_once_with("s3://uploads/batch1.xlsx")
    assert result.upload_id == "7"


def test_acknowledge_failure_is_logged_not_raised(service):
    ack = MagicMock(side_effect=RuntimeError("commit failed"))

    result = service.handle(event(status="done"), topic=TOPIC, acknowledge=ack)

    ack.assert_called_once_with()
    assert not result.acknowledged
    assert result.outcome == PipelineState.SKIPPED


def test_messages_get_increasing_sequence_numbers(service):
    numbers = [service.handle(event(status="done"), topic=TOPIC).message_number for _ in range(3)]

    assert numbers == [1, 2, 3]
    assert MessageCounter().current == 3
