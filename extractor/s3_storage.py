from urllib.parse import unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from utils.exceptions import UpstreamError, ValidationError
from utils.logger import get_logger

logger = get_logger("s3_storage")


def parse_s3_location(object_key: str, default_bucket: str = None) -> tuple:
    """
    Split an object reference into (bucket, key).

    Accepted forms:
        s3://bucket/path/file.xlsx
        https://bucket.s3.amazonaws.com/path/file.xlsx (also regional hosts)
        https://s3.us-east-1.amazonaws.com/bucket/path/file.xlsx
        path/file.xlsx (resolved against default_bucket)
    """
    if not object_key:
        raise ValidationError("object key is missing")

    parsed = urlparse(object_key)
    if parsed.scheme == "s3":
        return parsed.netloc, unquote(parsed.path.lstrip("/"))

    if parsed.scheme in ("http", "https"):
        host = parsed.netloc
        path = unquote(parsed.path.lstrip("/"))
        if ".s3" in host and not host.startswith("s3"):
            # virtual hosted style
            return host.split(".s3", 1)[0], path
        bucket, _, key = path.partition("/")
        return bucket, key

    if not default_bucket:
        raise ValidationError(f"No bucket configured for object key {object_key}")
    return default_bucket, object_key


class S3Storage:
    def __init__(self, region: str, upload_bucket: str = None, client=None):
        self.upload_bucket = upload_bucket
        self.client = client or boto3.client("s3", region_name=region)

    def download_file(self, object_key: str) -> bytes:
        bucket, key = parse_s3_location(object_key, self.upload_bucket)
        logger.info(f"downloadFile(): file is on S3 {bucket} / {key}")
        try:
            response = self.client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download s3://{bucket}/{key}: {e}")
            raise UpstreamError(f"download of {object_key} failed: {e}") from e

    def upload_file(self, bucket: str, key: str, body: bytes, content_type: str = None) -> str:
        logger.info(f"upload file to s3 {bucket} / {key}")
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=body, **extra)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload s3://{bucket}/{key}: {e}")
            raise UpstreamError(f"upload of {key} failed: {e}") from e
        return key
