import os
import logging
from urllib.parse import urljoin
from dotenv import load_dotenv
from .coordinator import VRFCoordinator
from .utils import open_session
from typing import Any, Optional

logger = logging.getLogger(__name__)


class VRFCoordinatorClient(VRFCoordinator):
    """HTTP client for a remote randomness coordinator service.

    The service answers a request with its id right away and later calls the
    lottery's callback endpoint with the random words.
    """

    def __init__(self, base_fqdn: Optional[str] = None, timeout: int = 45):
        load_dotenv()
        fqdn = base_fqdn or os.getenv("VRF_COORDINATOR_FQDN")
        if not fqdn:
            raise ValueError("Environment variable 'VRF_COORDINATOR_FQDN' is not set")

        self.base_url = f"https://{fqdn}".rstrip("/")
        self.session = open_session(fqdn)
        self.timeout = timeout

    # -------- core request --------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        r = self.session.request(
            method=method.upper(),
            url=url,
            params=params,
            json=json,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    # -------- API callers --------
    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
    ) -> int:
        response = self._request(
            "POST",
            "/api/v1/vrf/requests",
            json={
                "key_hash": key_hash,
                "subscription_id": subscription_id,
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "num_words": num_words,
            },
        )
        if not isinstance(response, dict) or "request_id" not in response:
            raise RuntimeError(f"Unexpected coordinator response: {response!r}")

        request_id = int(response["request_id"])
        if request_id <= 0:
            raise RuntimeError(f"Coordinator returned invalid request id {request_id}")
        logger.debug(f"Coordinator accepted randomness request {request_id}")
        return request_id

    def get_request(self, request_id: int) -> dict:
        """Fetch the coordinator's view of a request (status, fulfilment)."""
        return self._request("GET", f"/api/v1/vrf/requests/{request_id}")

    def get_subscription(self, subscription_id: int) -> dict:
        return self._request("GET", f"/api/v1/vrf/subscriptions/{subscription_id}")
