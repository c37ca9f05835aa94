"""
Application settings.

Values are read from the environment or a local .env file.
"""

import logging
from decouple import config


# =============================================================================
# FIREBASE
# =============================================================================

FIREBASE_CREDENTIALS = config("FIREBASE_CREDENTIALS", default="serviceAccountKey.json")
FIREBASE_PROJECT_ID = config("FIREBASE_PROJECT_ID", default=None)


# =============================================================================
# API SERVER
# =============================================================================

API_HOST = config("API_HOST", default="127.0.0.1")
API_PORT = config("API_PORT", default=8000, cast=int)


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = config("LOG_LEVEL", default="INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = None) -> None:
    """Configure root logging for the API process."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT
    )
