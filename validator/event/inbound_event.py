from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UPLOAD_RESOURCE = "upload"
PENDING_STATUS = "pending"


class UploadPayload(BaseModel):
    """Payload of an upload event. Unknown fields are kept and ignored."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource: str
    object_key: str = Field(alias="objectKey", min_length=1)
    status: str
    organization_id: Optional[str] = Field(default=None, alias="organizationId")
    id: str
    info: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _object_key_from_url(cls, data):
        # older producers send the S3 url of the upload instead of its key
        if isinstance(data, dict) and not data.get("objectKey") and data.get("url"):
            return {**data, "objectKey": data["url"]}
        return data

    @field_validator("id", "organization_id", mode="before")
    @classmethod
    def _id_as_text(cls, value):
        return str(value) if isinstance(value, int) and not isinstance(value, bool) else value


class InboundEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    topic: str
    originator: str
    timestamp: datetime
    mime_type: str = Field(alias="mime-type")
    payload: UploadPayload
