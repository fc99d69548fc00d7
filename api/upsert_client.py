from api.ubahn_client import UbahnClient
from config.ubahn_apis import user_sub_record_apis
from utils.logger import get_logger


logger = get_logger("upsert_client")


class UpsertClient:
    """
    Create-if-absent-else-update of the sub-records hanging under a user
    (skills, achievements, attributes). A sub-record is identified by the user
    and the id of the entity it references (skillId, achievementsProviderId,
    attributeId), so re-running the same row never duplicates it.
    """

    def __init__(self, ubahn_client: UbahnClient):
        self.ubahn_client = ubahn_client

    def upsert_user_sub_record(self, entity_name: str, user_id: str, key_field: str, body: dict):
        """
        Upsert a single sub-record of a user.

        Args:
            entity_name (str): key of user_sub_record_apis, e.g. "skills"
            user_id (str): primary-system user id
            key_field (str): body field holding the referenced entity id
            body (dict): the sub-record body, must contain key_field
        Returns:
            tuple[dict, bool]: the stored record and whether it was created.
        """
        path = user_sub_record_apis[entity_name].format(user_id=user_id)
        key_value = body[key_field]

        existing = self.ubahn_client.lookup_single(path, {key_field: key_value}, optional=True)
        if existing is None:
            record = self.ubahn_client.create_record(path, body)
            logger.info(f"Created {entity_name} {key_field}={key_value} for user {user_id}")
            return record, True

        update_body = {k: v for k, v in body.items() if k != key_field}
        record = self.ubahn_client.update_record(path, key_value, update_body)
        logger.info(f"Updated {entity_name} {key_field}={key_value} for user {user_id}")
        return record, False
