from io import BytesIO
import os
import time

import pandas as pd

from extractor.s3_storage import S3Storage, parse_s3_location
from utils.logger import get_logger

logger = get_logger('failed_records_exporter')

REASON_COLUMN = "validationMessage"
XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FailedRecordsExporter:
    """
    Writes the failed rows of a batch to an Excel file next to the original upload
    name ({name}_errors_{epoch millis}{ext}) in the failed records bucket, so they
    can be corrected and uploaded again.
    """

    def __init__(self, storage: S3Storage, bucket: str):
        self.storage = storage
        self.bucket = bucket

    @staticmethod
    def build_error_file_name(source_object_key: str, timestamp_ms: int = None) -> str:
        _, key = parse_s3_location(source_object_key, default_bucket="-")
        stem, ext = os.path.splitext(key)
        timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
        return f"{stem}_errors_{timestamp_ms}{ext or '.xlsx'}"

    @staticmethod
    def build_workbook(failed_rows: list, header: list = None) -> bytes:
        """
        Args:
            failed_rows (list[FailedRow]): rows to export
            header (list): original column order, extra columns found in rows follow it
        Returns:
            bytes: the .xlsx content
        """
        records = [failed_row.to_dict() for failed_row in failed_rows]
        columns = [c for c in (header or []) if c != REASON_COLUMN]
        for record in records:
            for column in record:
                if column not in columns and column != REASON_COLUMN:
                    columns.append(column)
        columns.append(REASON_COLUMN)

        df = pd.DataFrame(records, columns=columns)
        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Sheet1", index=False)
        return buffer.getvalue()

    def export(self, batch_result, source_object_key: str, header: list = None):
        """
        Upload the failed rows of batch_result.
        Returns:
            str | None: key of the uploaded report, None if no row failed.
        """
        if not batch_result.failed_rows:
            return None

        error_file_name = self.build_error_file_name(source_object_key)
        body = self.build_workbook(batch_result.failed_rows, header)
        logger.info(f"upload {len(batch_result.failed_rows)} failed records to s3 by key: {error_file_name}")
        return self.storage.upload_file(self.bucket, error_file_name, body, XLSX_CONTENT_TYPE)
