"""Firebase Admin SDK initialization"""

import os

import firebase_admin
from firebase_admin import credentials

from app.utils.environment import is_production
from app.utils.logger import get_logger

logger = get_logger("firebase")

_firebase_app = None


def get_credentials_file() -> str:
    """FIREBASE_CREDENTIALS_FILE, or the per-environment default file name."""
    cred_file = os.getenv("FIREBASE_CREDENTIALS_FILE")
    if cred_file:
        return cred_file
    return "firebase-credentials.json" if is_production() else "firebase-credentials-dev.json"


def get_firebase_app() -> firebase_admin.App:
    """Initialize the Firebase app on first use and cache it.

    Raises:
        FileNotFoundError: the service account file is missing
    """
    global _firebase_app

    if _firebase_app is not None:
        return _firebase_app

    cred_file = get_credentials_file()
    if not os.path.exists(cred_file):
        logger.warning(f"Firebase credentials file not found: {cred_file}")
        raise FileNotFoundError(f"Firebase credentials file not found: {cred_file}")

    _firebase_app = firebase_admin.initialize_app(credentials.Certificate(cred_file))
    logger.info(f"Firebase initialized with credentials from: {cred_file}")
    return _firebase_app
