from api.topcoder_client import TopcoderUsersClient
from api.ubahn_client import UbahnClient
from config.ubahn_apis import lookup_apis, user_sub_record_apis
from planning.user_record import UserRecord
from utils.exceptions import NotFoundError, UpstreamError, ValidationError
from utils.logger import get_logger

Logger = get_logger("identity_resolver")


class IdentityResolver:
    """
    Resolves the U-Bahn user id of a row, creating the user when allowed.

    Resolution:
    1. A row without handle but with an email is looked up by email in the
       identity system (Topcoder) to find the handle.
    2. The U-Bahn user is looked up by handle. Found -> its id.
    3. Not found:
       - create_missing_user False: NotFoundError.
       - create_missing_user True: create the Topcoder user, then the U-Bahn
         user, then (when an organization id is given) the external profile
         linking both ids under the organization.

    Creation is not transactional: if the Topcoder user is created and the
    U-Bahn creation fails, the error propagates and no link is written. A rerun
    of the row then finds neither the U-Bahn user nor a free handle in Topcoder
    and fails again until fixed by hand.
    """

    def __init__(
        self,
        ubahn_client: UbahnClient,
        topcoder_client: TopcoderUsersClient,
        create_missing_user: bool = True,
    ):
        self.ubahn_client = ubahn_client
        self.topcoder_client = topcoder_client
        self.create_missing_user = create_missing_user

    def resolve_or_create_user(self, record: UserRecord, organization_id: str = None) -> str:
        handle = record.handle
        external_user = None
        if not handle and record.email:
            external_user = self.topcoder_client.lookup_external_user(record.email)
            if external_user:
                handle = external_user.get("handle")
                Logger.info(f"Resolved handle {handle} from email {record.email}")

        if not handle:
            if record.email:
                raise NotFoundError(f"Could not find user with email {record.email}")
            raise ValidationError("handle is missing")

        user = self.ubahn_client.lookup_single(lookup_apis["users"], {"handle": handle}, optional=True)
        if user:
            return user["id"]

        if not self.create_missing_user:
            raise NotFoundError(f"Could not find user with handle {handle}")

        return self._create_user(record, handle, organization_id, external_user)

    def _create_user(self, record: UserRecord, handle: str, organization_id: str, external_user: dict = None) -> str:
        if external_user is None:
            external_user = self.topcoder_client.create_external_user({**record.user_fields(), "handle": handle})
            Logger.info(f"Created Topcoder user for handle {handle}")

        ubahn_user = self.ubahn_client.create_record(lookup_apis["users"], {"handle": handle})
        if not ubahn_user or not ubahn_user.get("id"):
            raise UpstreamError(f"Creating U-Bahn user {handle} returned no id")
        user_id = ubahn_user["id"]
        Logger.info(f"Created U-Bahn user {user_id} for handle {handle}")

        if organization_id:
            external_id = (external_user or {}).get("id")
            if external_id is None:
                raise UpstreamError(f"Topcoder user for handle {handle} has no id to link")
            self.ubahn_client.create_record(
                user_sub_record_apis["externalProfiles"].format(user_id=user_id),
                {"organizationId": organization_id, "externalId": str(external_id)},
            )
            Logger.info(f"Linked user {user_id} to external id {external_id} in organization {organization_id}")

        return user_id
