from dataclasses import dataclass
from typing import Callable

from api.ubahn_client import UbahnClient
from api.upsert_client import UpsertClient
from config.ubahn_apis import lookup_apis
from orchestrator.identity_resolver import IdentityResolver
from orchestrator.user_context import RecordExecutionContext, RecordOutcome
from planning.user_record import AttributeGroup, build_user_record
from utils.date_converter import convert_to_iso_date, convert_to_text
from utils.exceptions import NotFoundError
from utils.logger import get_logger
from validator.record.group_validator import OptionalGroupValidator

Logger = get_logger("subrecord_reconciler")


@dataclass(frozen=True)
class SubRecordGroupSpec:
    """
    Describes one optional group of columns and how it maps to a user sub-record.

    resolve(values) returns the referenced entity id; build_body(values, entity_id)
    returns the sub-record body, which must carry the id under key_field.
    """
    label: str
    sub_record_api: str
    key_field: str
    required_fields: tuple
    resolve: Callable[[dict], str]
    build_body: Callable[[dict, str], dict]


def _without_none(body: dict) -> dict:
    return {k: v for k, v in body.items() if v is not None}


class SubRecordReconciler:
    """
    Reconciles one row: resolves the user, then upserts the skill, the
    achievement and every attribute group of the row, strictly in that order.

    Every group goes through the same steps (_reconcile_group):
    1. all columns empty -> skipped
    2. partially filled -> ValidationError naming the group and the columns
    3. referenced entities resolved by exact name -> NotFoundError if absent
    4. existing sub-record for (user, entity) looked up
    5. created if absent, updated in place otherwise
    """

    def __init__(self, ubahn_client: UbahnClient, identity_resolver: IdentityResolver, upsert_client: UpsertClient = None):
        self.ubahn_client = ubahn_client
        self.identity_resolver = identity_resolver
        self.upsert_client = upsert_client or UpsertClient(ubahn_client)

        self.skill_spec = SubRecordGroupSpec(
            label="skill",
            sub_record_api="skills",
            key_field="skillId",
            required_fields=("skillProviderName", "skillName"),
            resolve=self._resolve_skill,
            build_body=lambda values, skill_id: _without_none({
                "skillId": skill_id,
                "certifierId": convert_to_text(values["skillCertifierId"]),
                "certifiedDate": convert_to_iso_date(values["skillCertifiedDate"]),
                "metricValue": convert_to_text(values["metricValue"]),
            }),
        )
        self.achievement_spec = SubRecordGroupSpec(
            label="achievement",
            sub_record_api="achievements",
            key_field="achievementsProviderId",
            required_fields=("achievementsProviderName", "achievementsName"),
            resolve=self._resolve_achievements_provider,
            build_body=lambda values, provider_id: _without_none({
                "achievementsProviderId": provider_id,
                "certifierId": convert_to_text(values["achievementsCertifierId"]),
                "certifiedDate": convert_to_iso_date(values["achievementsCertifiedDate"]),
                "name": convert_to_text(values["achievementsName"]),
                "uri": convert_to_text(values["achievementsUri"]),
            }),
        )

    def _attribute_spec(self, attribute: AttributeGroup) -> SubRecordGroupSpec:
        i = attribute.index
        return SubRecordGroupSpec(
            label=f"attribute {i}",
            sub_record_api="attributes",
            key_field="attributeId",
            required_fields=(f"attributeGroupName{i}", f"attributeName{i}", f"attributeValue{i}"),
            resolve=lambda values: self._resolve_attribute(
                values[f"attributeGroupName{i}"], values[f"attributeName{i}"]
            ),
            build_body=lambda values, attribute_id: {
                "attributeId": attribute_id,
                "value": convert_to_text(values[f"attributeValue{i}"]),
            },
        )

    def _lookup_by_name(self, resource: str, params: dict, description: str) -> dict:
        try:
            return self.ubahn_client.lookup_single(lookup_apis[resource], params)
        except NotFoundError as e:
            raise NotFoundError(f"{description} not found") from e

    def _resolve_skill(self, values: dict) -> str:
        provider_name = values["skillProviderName"]
        provider = self._lookup_by_name(
            "skillsProviders", {"name": provider_name}, f"skill provider '{provider_name}'"
        )
        skill_name = values["skillName"]
        skill = self._lookup_by_name(
            "skills",
            {"skillProviderId": provider["id"], "name": skill_name},
            f"skill '{skill_name}' of provider '{provider_name}'",
        )
        return skill["id"]

    def _resolve_achievements_provider(self, values: dict) -> str:
        provider_name = values["achievementsProviderName"]
        provider = self._lookup_by_name(
            "achievementsProviders", {"name": provider_name}, f"achievements provider '{provider_name}'"
        )
        return provider["id"]

    def _resolve_attribute(self, group_name, attribute_name) -> str:
        group = self._lookup_by_name(
            "attributeGroups", {"name": group_name}, f"attribute group '{group_name}'"
        )
        attribute = self._lookup_by_name(
            "attributes",
            {"attributeGroupId": group["id"], "name": attribute_name},
            f"attribute '{attribute_name}' of group '{group_name}'",
        )
        return attribute["id"]

    def _reconcile_group(self, spec: SubRecordGroupSpec, user_id: str, values: dict) -> str:
        """
        Upsert the sub-record described by values.
        Returns:
            str: "SKIPPED", "CREATED" or "UPDATED"
        """
        validator = OptionalGroupValidator(spec.label, list(spec.required_fields))
        if not validator.validate(values):
            return "SKIPPED"

        entity_id = spec.resolve(values)
        body = spec.build_body(values, entity_id)
        _, created = self.upsert_client.upsert_user_sub_record(spec.sub_record_api, user_id, spec.key_field, body)
        return "CREATED" if created else "UPDATED"

    def reconcile_skill(self, user_id: str, values: dict) -> str:
        return self._reconcile_group(self.skill_spec, user_id, values)

    def reconcile_achievement(self, user_id: str, values: dict) -> str:
        return self._reconcile_group(self.achievement_spec, user_id, values)

    def reconcile_attribute(self, user_id: str, attribute: AttributeGroup) -> str:
        return self._reconcile_group(self._attribute_spec(attribute), user_id, attribute.to_dict())

    def reconcile_record(self, row_number: int, row: dict, organization_id: str = None) -> RecordOutcome:
        """
        Reconcile one row. Any error stops the row and becomes its failure reason;
        nothing is raised to the caller.
        """
        ctx = RecordExecutionContext(row_number, row)
        try:
            record = build_user_record(row, row_number)
            ctx.user_id = self.identity_resolver.resolve_or_create_user(record, organization_id)
            ctx.ok("skill", self.reconcile_skill(ctx.user_id, record.skill.to_dict()))
            ctx.ok("achievement", self.reconcile_achievement(ctx.user_id, record.achievement.to_dict()))
            for attribute in record.attributes:
                ctx.ok(f"attribute{attribute.index}", self.reconcile_attribute(ctx.user_id, attribute))
        except Exception as e:
            Logger.error(f"Row {row_number} failed: {e}")
            ctx.fail(str(e) or e.__class__.__name__)
        else:
            Logger.info(f"Row {row_number} reconciled for user {ctx.user_id}: {ctx.entity_status}")
        return ctx.to_outcome()
