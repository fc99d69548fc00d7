from planning.user_record import is_blank
from utils.exceptions import ValidationError
from utils.logger import get_logger

Logger = get_logger("group_validator")

FIELD_LABELS = {
    "handle": "handle",
    "email": "email",
    "skillProviderName": "skill provider name",
    "skillName": "skill name",
    "skillCertifierId": "skill certifier id",
    "skillCertifiedDate": "skill certified date",
    "metricValue": "metric value",
    "achievementsProviderName": "achievements provider name",
    "achievementsName": "achievement name",
    "achievementsCertifierId": "achievement certifier id",
    "achievementsCertifiedDate": "achievement certified date",
    "achievementsUri": "achievement uri",
    "attributeGroupName": "attribute group name",
    "attributeName": "attribute name",
    "attributeValue": "attribute value",
}


def field_label(column: str) -> str:
    return FIELD_LABELS.get(column.rstrip("0123456789"), column)


class OptionalGroupValidator:
    """
    Validates an optional group of row columns.

    A group is either untouched (every column empty, nothing to do) or
    complete (every required column populated). Anything in between is a
    row-level validation failure naming the group and the missing columns.
    """

    def __init__(self, group_label: str, required_fields: list):
        self.group_label = group_label
        self.required_fields = required_fields
        self.missing_fields = []

    @staticmethod
    def is_empty(values: dict) -> bool:
        return all(is_blank(value) for value in values.values())

    def get_missing_fields(self, values: dict) -> list:
        return [name for name in self.required_fields if is_blank(values.get(name))]

    def validate(self, values: dict) -> bool:
        """
        Args:
            values (dict): column name -> cell value of the group
        Returns:
            bool: False if the group is empty (skip it), True if it is complete.
        Raises:
            ValidationError: the group is partially populated.
        """
        if self.is_empty(values):
            return False
        self.missing_fields = self.get_missing_fields(values)
        if self.missing_fields:
            labels = ", ".join(field_label(name) for name in self.missing_fields)
            verb = "is" if len(self.missing_fields) == 1 else "are"
            msg = f"{self.group_label}: {labels} {verb} missing"
            Logger.error(msg)
            raise ValidationError(msg)
        return True
