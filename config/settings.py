import os
import tempfile


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
LOG_DIR = os.environ.get(
    "LOG_DIR", os.path.join(tempfile.gettempdir(), "bulk_record_processor_logs")
)

# Kafka
KAFKA_URL = os.environ.get("KAFKA_URL", "localhost:9092")
# below are used for secure Kafka connection, they are optional
# for the local Kafka, they are not needed
KAFKA_CLIENT_CERT = os.environ.get("KAFKA_CLIENT_CERT")
KAFKA_CLIENT_CERT_KEY = os.environ.get("KAFKA_CLIENT_CERT_KEY")
KAFKA_GROUP_ID = os.environ.get("KAFKA_GROUP_ID", "bulk-record-processor")
ACTION_CREATE_TOPIC = os.environ.get("ACTION_CREATE_TOPIC", "u-bahn.action.create")

# S3
AWS_REGION = os.environ.get("AWS_REGION", "us-east-1")
S3_UPLOAD_RECORD_BUCKET = os.environ.get("S3_UPLOAD_RECORD_BUCKET")
S3_FAILED_RECORD_BUCKET = os.environ.get("S3_FAILED_RECORD_BUCKET")

# APIs
UBAHN_API_URL = os.environ.get("UBAHN_API_URL", "http://localhost:3001")
UBAHN_SEARCH_UI_API_URL = os.environ.get("UBAHN_SEARCH_UI_API_URL", "http://localhost:3001")
TOPCODER_USERS_API = os.environ.get("TOPCODER_USERS_API", "http://localhost:3001/v3/users")
API_MAX_RETRIES = int(os.environ.get("API_MAX_RETRIES", "3"))
API_TIMEOUT_SECONDS = float(os.environ.get("API_TIMEOUT_SECONDS", "30"))

# Processing
PROCESS_CONCURRENCY_COUNT = max(1, int(os.environ.get("PROCESS_CONCURRENCY_COUNT", "25")))
CREATE_MISSING_USER_FLAG = _env_flag("CREATE_MISSING_USER_FLAG", True)

# Auth0 machine to machine credentials
AUTH0_URL = os.environ.get("AUTH0_URL", "https://topcoder-dev.auth0.com/oauth/token")
AUTH0_AUDIENCE = os.environ.get("AUTH0_AUDIENCE", "https://m2m.topcoder-dev.com/")
AUTH0_CLIENT_ID = os.environ.get("AUTH0_CLIENT_ID")
AUTH0_CLIENT_SECRET = os.environ.get("AUTH0_CLIENT_SECRET")
AUTH0_PROXY_SERVER_URL = os.environ.get("AUTH0_PROXY_SERVER_URL")
TOKEN_CACHE_TIME = int(os.environ.get("TOKEN_CACHE_TIME", "0")) or None
