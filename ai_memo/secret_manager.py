"""Google Cloud Secret Manager lookups for settings.

Secrets are named ``ai-memo-<name>-<environment>``; ``SECRET_NAMES`` maps the
settings fields that may come from Secret Manager to their ``<name>``.
"""

import logging
import os
from functools import lru_cache

from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

logger = logging.getLogger(__name__)

SECRET_PREFIX = "ai-memo"

SECRET_NAMES: dict[str, str] = {
    "db_password": "db-password",
    "google_oauth_client_id": "oauth-client-id",
    "google_oauth_client_secret": "oauth-client-secret",
    "session_secret_key": "session-secret-key",
}


@lru_cache
def _client() -> secretmanager.SecretManagerServiceClient:
    return secretmanager.SecretManagerServiceClient()


def secret_id_for(field: str, environment: str | None = None) -> str:
    """Secret id of a settings field, e.g. ``ai-memo-db-password-dev``.

    Raises:
        KeyError: If the field is not stored in Secret Manager.
    """
    env = environment or os.environ.get("ENVIRONMENT", "dev")
    return f"{SECRET_PREFIX}-{SECRET_NAMES[field]}-{env}"


def read_secret(project_id: str, secret_id: str, version: str = "latest") -> str | None:
    """Read one secret version.

    Returns:
        The decoded payload, or None when the secret is missing, not readable
        or Secret Manager cannot be reached (e.g. no local credentials).
    """
    name = f"projects/{project_id}/secrets/{secret_id}/versions/{version}"
    try:
        response = _client().access_secret_version(request={"name": name})
    except (gcp_exceptions.NotFound, gcp_exceptions.PermissionDenied):
        logger.debug(f"Secret {secret_id} not found or not accessible")
        return None
    except (gcp_exceptions.GoogleAPIError, auth_exceptions.DefaultCredentialsError) as e:
        logger.debug(f"Secret {secret_id} unavailable: {e}")
        return None
    return response.payload.data.decode("utf-8")


def load_missing_secrets(values: dict, project_id: str | None) -> dict:
    """Fill secret fields that are empty in ``values`` from Secret Manager.

    Without a project id nothing is looked up.
    """
    if not project_id:
        return values
    for field in SECRET_NAMES:
        if values.get(field):
            continue
        secret = read_secret(project_id, secret_id_for(field))
        if secret:
            values[field] = secret
    return values
