from confluent_kafka import Consumer, KafkaError

from orchestrator.processor_service import ProcessorService
from utils.logger import get_logger

logger = get_logger("kafka_consumer")


def get_kafka_options(kafka_url: str, group_id: str, client_cert: str = None, client_cert_key: str = None) -> dict:
    """Consumer configuration with manual commits; SSL when a client cert and key are given."""
    options = {
        'bootstrap.servers': kafka_url,
        'group.id': group_id,
        'auto.offset.reset': 'earliest',
        'enable.auto.commit': False,
        # a whole batch is processed between two polls
        'max.poll.interval.ms': 3600000,
    }
    if client_cert and client_cert_key:
        options.update({
            'security.protocol': 'SSL',
            'ssl.certificate.pem': client_cert,
            'ssl.key.pem': client_cert_key,
        })
    return options


class KafkaRecordConsumer:
    """
    Polls the action topic and hands every message to ProcessorService, one at a
    time. The offset of a message is committed once, after it has been handled,
    whatever the outcome.
    """

    def __init__(self, processor: ProcessorService, topics: list, options: dict = None, consumer=None):
        self.processor = processor
        self.topics = topics
        self.consumer = consumer or Consumer(options)
        self.running = False

    def _commit_callback(self, msg):
        def commit():
            self.consumer.commit(message=msg, asynchronous=False)
        return commit

    def handle_message(self, msg):
        logger.info(
            f"Handle Kafka event message; Topic: {msg.topic()}; Partition: {msg.partition()}; "
            f"Offset: {msg.offset()}"
        )
        return self.processor.handle(msg.value(), topic=msg.topic(), acknowledge=self._commit_callback(msg))

    def poll_once(self, timeout: float = 1.0):
        msg = self.consumer.poll(timeout=timeout)
        if msg is None:
            return None
        if msg.error():
            if msg.error().code() != KafkaError._PARTITION_EOF:
                logger.error(f"Kafka error: {msg.error()}")
            return None
        return self.handle_message(msg)

    def run(self):
        logger.info(f"Starting kafka consumer on topics {self.topics}")
        self.consumer.subscribe(self.topics)
        self.running = True
        logger.info("Kafka consumer initialized successfully")
        try:
            while self.running:
                self.poll_once()
        finally:
            self.close()

    def stop(self):
        self.running = False

    def close(self):
        logger.info("Closing kafka consumer")
        self.consumer.close()
