from api.api_client import APIClient
from config.ubahn_apis import upload_status_api
from utils.exceptions import ConflictError, NotFoundError, UpstreamError
from utils.logger import get_logger

logger = get_logger("ubahn_client")


class UbahnClient:
    """
    Client of the primary record system (U-Bahn) and of the upload status API.
    """

    def __init__(self, api_client: APIClient, status_api_client: APIClient = None):
        self.api_client = api_client
        self.status_api_client = status_api_client or api_client

    @staticmethod
    def _exact_matches(records: list, params: dict) -> list:
        return [
            record for record in records
            if all(str(record.get(key)) == str(value) for key, value in params.items())
        ]

    def lookup_single(self, path: str, params: dict, optional: bool = False):
        """
        Get exactly one record of the given resource.

        Args:
            path (str): resource path, e.g. "/skills"
            params (dict): filter query params
            optional (bool): whether zero matches is allowed
        Returns:
            dict | None: the record, or None when optional and nothing matched.
        Raises:
            NotFoundError: zero matches and the record is not optional.
            ConflictError: several matches and none (or several) match the filter exactly.
        """
        logger.debug(f"request {path} by params: {params}")
        records = self.api_client.get(path, params=params) or []
        if isinstance(records, dict):
            records = [records]

        if len(records) == 1:
            return records[0]
        if not records:
            if optional:
                return None
            raise NotFoundError(f"get {path} by params: {params} returned no record")

        exact = self._exact_matches(records, params)
        if len(exact) == 1:
            return exact[0]
        logger.error(f"get {path} by params: {params} returned {len(records)} records")
        raise ConflictError(f"get {path} by params: {params} matched {len(records)} records")

    def create_record(self, path: str, body: dict) -> dict:
        logger.debug(f"request {path} by data: {body}")
        return self._single_record(self.api_client.post(path, json=body), path)

    def update_record(self, path: str, record_id: str, body: dict) -> dict:
        logger.debug(f"patch {path}/{record_id} by data: {body}")
        return self._single_record(self.api_client.patch(f"{path}/{record_id}", json=body), path)

    def update_process_status(self, upload_id: str, data: dict):
        """Notify the upload status API of the processing status of an upload."""
        logger.info(f"update process status of upload {upload_id}: {data}")
        return self.status_api_client.patch(upload_status_api.format(upload_id=upload_id), json=data)

    @staticmethod
    def _single_record(response, path: str):
        if isinstance(response, list):
            if len(response) != 1:
                raise UpstreamError(f"{path} returned {len(response)} records, expected one")
            return response[0]
        return response
