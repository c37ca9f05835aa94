"""
Firebase configuration.

Initializes the firebase-admin SDK once per process and hands out the
Firestore client.

Functions:
    get_db: Return the Firestore client, or None if it cannot be created.
"""

import logging
import os

import firebase_admin
from firebase_admin import credentials, firestore

from config import settings

logger = logging.getLogger(__name__)

_client = None


def get_db():
    """
    Get the Firestore client.

    The firebase-admin app is initialized lazily from the service account
    file named by FIREBASE_CREDENTIALS.

    Returns:
        google.cloud.firestore.Client | None: The client, or None when the
        credentials are missing or initialization fails.
    """
    global _client
    if _client is not None:
        return _client

    cred_path = settings.FIREBASE_CREDENTIALS
    if not os.path.exists(cred_path):
        logger.error("Firebase credentials not found at %s", cred_path)
        return None

    try:
        if not firebase_admin._apps:
            options = {}
            if settings.FIREBASE_PROJECT_ID:
                options["projectId"] = settings.FIREBASE_PROJECT_ID
            firebase_admin.initialize_app(credentials.Certificate(cred_path), options or None)
        _client = firestore.client()
    except (ValueError, OSError) as e:
        logger.error("Firebase initialization failed: %s", e)
        return None

    logger.info("Connected to Firestore")
    return _client
