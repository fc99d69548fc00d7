from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
import pandas as pd

# Columns used only when the user has to be created
USER_PROFILE_FIELDS = (
    "firstName", "lastName", "email", "countryName", "providerType", "provider", "userId"
)


def is_blank(value: Any) -> bool:
    """None, NaN/NaT and empty or whitespace-only strings are treated as absent cells."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_value(value: Any) -> Any:
    if is_blank(value):
        return None
    return value.strip() if isinstance(value, str) else value


@dataclass(frozen=True)
class SkillGroup:
    provider_name: Any = None
    name: Any = None
    certifier_id: Any = None
    certified_date: Any = None
    metric_value: Any = None

    def to_dict(self):
        return {
            "skillProviderName": self.provider_name,
            "skillName": self.name,
            "skillCertifierId": self.certifier_id,
            "skillCertifiedDate": self.certified_date,
            "metricValue": self.metric_value,
        }


@dataclass(frozen=True)
class AchievementGroup:
    provider_name: Any = None
    certifier_id: Any = None
    certified_date: Any = None
    name: Any = None
    uri: Any = None

    def to_dict(self):
        return {
            "achievementsProviderName": self.provider_name,
            "achievementsCertifierId": self.certifier_id,
            "achievementsCertifiedDate": self.certified_date,
            "achievementsName": self.name,
            "achievementsUri": self.uri,
        }


@dataclass(frozen=True)
class AttributeGroup:
    index: int
    group_name: Any = None
    name: Any = None
    value: Any = None

    def to_dict(self):
        return {
            f"attributeGroupName{self.index}": self.group_name,
            f"attributeName{self.index}": self.name,
            f"attributeValue{self.index}": self.value,
        }


@dataclass
class UserRecord:
    """One spreadsheet row, split into the user identity and its optional sub-record groups."""
    row_number: Optional[int]
    handle: Optional[str]
    email: Optional[str]
    profile: dict
    skill: SkillGroup
    achievement: AchievementGroup
    attributes: list = field(default_factory=list)
    raw: dict = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.handle or self.email or f"row {self.row_number}"

    def user_fields(self) -> dict:
        """Fields sent to the identity system when the user has to be created."""
        return {"handle": self.handle, **self.profile}


def build_user_record(row: Mapping[str, Any], row_number: int = None) -> UserRecord:
    """
    Build a UserRecord from a raw row mapping.

    Attribute groups are collected for i = 1, 2, ... and the collection stops at
    the first i whose attributeValue{i} is absent; later columns are ignored.
    """
    raw = dict(row)
    attributes = []
    i = 1
    while not is_blank(raw.get(f"attributeValue{i}")):
        attributes.append(AttributeGroup(
            index=i,
            group_name=clean_value(raw.get(f"attributeGroupName{i}")),
            name=clean_value(raw.get(f"attributeName{i}")),
            value=clean_value(raw.get(f"attributeValue{i}")),
        ))
        i += 1

    handle = clean_value(raw.get("handle"))
    email = clean_value(raw.get("email"))
    return UserRecord(
        row_number=row_number,
        handle=str(handle) if handle is not None else None,
        email=str(email) if email is not None else None,
        profile={name: clean_value(raw.get(name)) for name in USER_PROFILE_FIELDS},
        skill=SkillGroup(
            provider_name=clean_value(raw.get("skillProviderName")),
            name=clean_value(raw.get("skillName")),
            certifier_id=clean_value(raw.get("skillCertifierId")),
            certified_date=clean_value(raw.get("skillCertifiedDate")),
            metric_value=clean_value(raw.get("metricValue")),
        ),
        achievement=AchievementGroup(
            provider_name=clean_value(raw.get("achievementsProviderName")),
            certifier_id=clean_value(raw.get("achievementsCertifierId")),
            certified_date=clean_value(raw.get("achievementsCertifiedDate")),
            name=clean_value(raw.get("achievementsName")),
            uri=clean_value(raw.get("achievementsUri")),
        ),
        attributes=attributes,
        raw=raw,
    )
