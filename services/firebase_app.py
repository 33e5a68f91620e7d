import os

import firebase_admin
from firebase_admin import credentials

from config import FIREBASE_CREDENTIALS_PATH
from utils.logger import get_logger

logger = get_logger(__name__)

# Inicializar Firebase Admin (solo una vez)
_initialized = False


def initialize_firebase_admin() -> bool:
    """Initialize the Firebase Admin SDK once. Returns whether it is usable."""
    global _initialized
    if _initialized:
        return True
    try:
        firebase_admin.get_app()
        _initialized = True
        return True
    except ValueError:
        pass  # no default app yet

    try:
        if os.path.exists(FIREBASE_CREDENTIALS_PATH):
            cred = credentials.Certificate(FIREBASE_CREDENTIALS_PATH)
            firebase_admin.initialize_app(cred)
            _initialized = True
            logger.info("Firebase Admin initialized with %s", FIREBASE_CREDENTIALS_PATH)
        elif os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
            # production: application default credentials
            firebase_admin.initialize_app()
            _initialized = True
            logger.info("Firebase Admin initialized from GOOGLE_APPLICATION_CREDENTIALS")
        else:
            logger.warning("Firebase credentials not found at %s; token checks and push notifications are disabled",
                           FIREBASE_CREDENTIALS_PATH)
    except (ValueError, OSError) as e:
        logger.error("Error initializing Firebase Admin: %s", e)
        _initialized = False
    return _initialized
