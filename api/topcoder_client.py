from api.api_client import APIClient
from utils.exceptions import ConflictError
from utils.logger import get_logger

logger = get_logger("topcoder_client")


class TopcoderUsersClient:
    """
    Client of the secondary identity system (Topcoder Users API, v3 envelope:
    {"result": {"content": ...}}).
    """

    def __init__(self, api_client: APIClient):
        self.api_client = api_client

    @staticmethod
    def _content(response):
        if isinstance(response, dict) and "result" in response:
            return (response.get("result") or {}).get("content")
        return response

    def lookup_external_user(self, email: str):
        """
        Find the external user owning the given email.
        Returns:
            dict | None: the user, or None if no user has that email.
        """
        content = self._content(self.api_client.get("", params={"filter": f"email={email}"})) or []
        if isinstance(content, dict):
            content = [content]
        matches = [u for u in content if str(u.get("email", "")).lower() == email.lower()] or content
        if not matches:
            logger.info(f"No external user found with email {email}")
            return None
        if len(matches) > 1:
            raise ConflictError(f"{len(matches)} external users found with email {email}")
        return matches[0]

    def create_external_user(self, user_fields: dict) -> dict:
        """Create an already verified user in the identity system."""
        user = {
            "handle": user_fields.get("handle"),
            "firstName": user_fields.get("firstName"),
            "lastName": user_fields.get("lastName"),
            "email": user_fields.get("email"),
            "active": True,
            "country": {"name": user_fields.get("countryName")},
            "profile": {
                "providerType": user_fields.get("providerType"),
                "provider": user_fields.get("provider"),
                "userId": user_fields.get("userId"),
            },
            "credential": {"password": ""},
        }
        logger.debug(f"create external user with handle {user['handle']}")
        return self._content(self.api_client.post("", json={"param": user}))
