import threading
import uuid
from unittest.mock import MagicMock

import pytest

from api.topcoder_client import TopcoderUsersClient
from api.ubahn_client import UbahnClient
from orchestrator.identity_resolver import IdentityResolver
from orchestrator.subrecord_reconciler import SubRecordReconciler
from cache.message_counter import MessageCounter


class FakeApi:
    """
    In-memory stand-in for APIClient: collections keyed by path, GET filters
    by exact equality of every query param, POST appends, PATCH updates the
    record of the collection whose id (or referenced entity id) matches.
    """

    def __init__(self, collections=None):
        self.collections = {path: [dict(r) for r in records] for path, records in (collections or {}).items()}
        self.calls = []
        self.fail_on = {}
        self._lock = threading.Lock()

    def _maybe_fail(self, method, path):
        error = self.fail_on.get((method, path))
        if error:
            raise error

    def get(self, endpoint, params=None):
        with self._lock:
            self.calls.append(("get", endpoint, dict(params or {})))
            self._maybe_fail("get", endpoint)
            return [
                dict(r) for r in self.collections.get(endpoint, [])
                if all(str(r.get(k)) == str(v) for k, v in (params or {}).items())
            ]

    def post(self, endpoint, json=None, params=None):
        with self._lock:
            self.calls.append(("post", endpoint, dict(json or {})))
            self._maybe_fail("post", endpoint)
            record = {"id": str(uuid.uuid4()), **(json or {})}
            self.collections.setdefault(endpoint, []).append(record)
            return dict(record)

    def patch(self, endpoint, json=None):
        with self._lock:
            self.calls.append(("patch", endpoint, dict(json or {})))
            self._maybe_fail("patch", endpoint)
            path, _, record_id = endpoint.rpartition("/")
            for record in self.collections.get(path, []):
                if record.get("id") == record_id or record_id in record.values():
                    record.update(json or {})
                    return dict(record)
            self.collections.setdefault(path, []).append({"id": record_id, **(json or {})})
            return {"id": record_id, **(json or {})}

    def calls_to(self, method, endpoint=None):
        return [c for c in self.calls if c[0] == method and (endpoint is None or c[1] == endpoint)]


UBAHN_SEED = {
    "/users": [{"id": "u1", "handle": "user1"}, {"id": "u2", "handle": "user2"}],
    "/skillsProviders": [{"id": "sp1", "name": "Udemy"}],
    "/skills": [
        {"id": "sk1", "skillProviderId": "sp1", "name": "Python"},
        {"id": "sk2", "skillProviderId": "sp1", "name": "Java"},
    ],
    "/achievementsProviders": [{"id": "ap1", "name": "Coursera"}],
    "/attributeGroups": [{"id": "ag1", "name": "group 1"}],
    "/attributes": [
        {"id": "at1", "attributeGroupId": "ag1", "name": "isAvailable"},
        {"id": "at2", "attributeGroupId": "ag1", "name": "location"},
    ],
}


@pytest.fixture()
def ubahn_api():
    return FakeApi(UBAHN_SEED)


@pytest.fixture()
def status_api():
    return FakeApi()


@pytest.fixture()
def ubahn_client(ubahn_api, status_api):
    return UbahnClient(ubahn_api, status_api_client=status_api)


@pytest.fixture()
def topcoder_client():
    client = MagicMock(spec=TopcoderUsersClient)
    client.lookup_external_user.return_value = None
    client.create_external_user.side_effect = lambda fields: {"id": 4000 + len(fields["handle"]), "handle": fields["handle"]}
    return client


@pytest.fixture()
def identity_resolver(ubahn_client, topcoder_client):
    return IdentityResolver(ubahn_client, topcoder_client, create_missing_user=True)


@pytest.fixture()
def reconciler(ubahn_client, identity_resolver):
    return SubRecordReconciler(ubahn_client, identity_resolver)


@pytest.fixture(autouse=True)
def fresh_message_counter():
    MessageCounter.reset_singleton()
    yield
    MessageCounter.reset_singleton()


def full_row(handle="user1", **overrides):
    row = {
        "handle": handle,
        "skillProviderName": "Udemy",
        "skillName": "Python",
        "skillCertifierId": 123,
        "skillCertifiedDate": "2020-05-16",
        "metricValue": 5.0,
        "achievementsProviderName": "Coursera",
        "achievementsName": "Machine Learning",
        "achievementsUri": "https://coursera.org/ml",
        "achievementsCertifierId": "c-1",
        "achievementsCertifiedDate": "2020-06-01",
        "attributeGroupName1": "group 1",
        "attributeName1": "isAvailable",
        "attributeValue1": "true",
    }
    row.update(overrides)
    return {k: v for k, v in row.items() if v is not None}
