import os
import logging
import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()

HEALTH_ENDPOINT = "/api/v1/health"


def open_session(fqdn: str) -> requests.Session:
    """Open a requests session to the randomness coordinator service.

    The session carries the ``VRF_COORDINATOR_API_KEY`` bearer token (when
    set) and is verified against the service's health endpoint.

    Returns
    -------
    requests.Session
        The initialized, authenticated session.

    Raises
    ------
    RuntimeError
        If ``fqdn`` is empty or the service cannot be reached. Any underlying
        exception is re-raised as a ``RuntimeError`` with context.
    """
    if not fqdn:
        raise RuntimeError("Environment variable 'VRF_COORDINATOR_FQDN' is not set")
    url = "https://" + fqdn + HEALTH_ENDPOINT

    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    api_key = os.environ.get("VRF_COORDINATOR_API_KEY")
    if api_key:
        # Never log the key itself
        session.headers["Authorization"] = f"Bearer {api_key}"
        logger.debug("Using configured coordinator API key")
    else:
        logger.debug("No coordinator API key configured; using anonymous access")

    try:
        response = session.get(url)
        response.raise_for_status()
    except Exception as e:
        session.close()
        logger.critical(f"Error occurred while starting coordinator session: {e}")
        raise RuntimeError(f"Failed to establish coordinator session: {e}") from e

    logger.debug(f"Coordinator at {fqdn} is reachable")
    return session
