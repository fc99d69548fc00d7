"""
Bulk record processor entry point.

Consumes upload events from Kafka and reconciles every row of the uploaded
spreadsheet against the U-Bahn and Topcoder APIs.

Usage:
    python bulk_record_processor.py
"""

import signal

from api.api_client import APIClient
from api.auth_client import AuthAPI
from api.topcoder_client import TopcoderUsersClient
from api.ubahn_client import UbahnClient
from config import settings
from config.ubahn_apis import base_url, status_base_url, topcoder_users_url
from extractor.s3_storage import S3Storage
from loader.failed_records_exporter import FailedRecordsExporter
from orchestrator.batch_runner import BatchRunner
from orchestrator.identity_resolver import IdentityResolver
from orchestrator.kafka_consumer import KafkaRecordConsumer, get_kafka_options
from orchestrator.processor_service import ProcessorService
from orchestrator.subrecord_reconciler import SubRecordReconciler
from utils.logger import get_logger

logger = get_logger('bulk_record_processor')


def build_processor() -> ProcessorService:
    auth_api = AuthAPI(
        auth_url=settings.AUTH0_URL,
        audience=settings.AUTH0_AUDIENCE,
        client_id=settings.AUTH0_CLIENT_ID,
        client_secret=settings.AUTH0_CLIENT_SECRET,
        proxy_server_url=settings.AUTH0_PROXY_SERVER_URL,
        token_cache_time=settings.TOKEN_CACHE_TIME,
    )

    def api_client(url):
        return APIClient(
            base_url=url,
            token_provider=auth_api.get_token,
            max_retries=settings.API_MAX_RETRIES,
            timeout=settings.API_TIMEOUT_SECONDS,
        )

    ubahn_client = UbahnClient(api_client(base_url), status_api_client=api_client(status_base_url))
    topcoder_client = TopcoderUsersClient(api_client(topcoder_users_url))
    identity_resolver = IdentityResolver(
        ubahn_client, topcoder_client, create_missing_user=settings.CREATE_MISSING_USER_FLAG
    )
    reconciler = SubRecordReconciler(ubahn_client, identity_resolver)
    storage = S3Storage(region=settings.AWS_REGION, upload_bucket=settings.S3_UPLOAD_RECORD_BUCKET)

    return ProcessorService(
        storage=storage,
        batch_runner=BatchRunner(reconciler, concurrency_limit=settings.PROCESS_CONCURRENCY_COUNT),
        exporter=FailedRecordsExporter(storage, bucket=settings.S3_FAILED_RECORD_BUCKET),
        status_client=ubahn_client,
    )


def main():
    consumer = KafkaRecordConsumer(
        processor=build_processor(),
        topics=[settings.ACTION_CREATE_TOPIC],
        options=get_kafka_options(
            settings.KAFKA_URL,
            settings.KAFKA_GROUP_ID,
            settings.KAFKA_CLIENT_CERT,
            settings.KAFKA_CLIENT_CERT_KEY,
        ),
    )

    def shutdown(signum, frame):
        logger.info(f"Received signal {signum}, stopping consumer")
        consumer.stop()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)
    consumer.run()


if __name__ == "__main__":
    main()
