"""
Firebase Firestore initialization.
Single-source-of-truth Firestore client for Emergency Report Hub.
"""

import json
import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app

from app.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[firestore.Client] = None

REQUIRED_CREDENTIAL_FIELDS = ["project_id", "private_key", "client_email"]


def _load_service_account(cred_path: str) -> dict:
    """Read a service account key and check it names a project and a signer."""
    if not os.path.exists(cred_path):
        raise FileNotFoundError(f"FIREBASE_CREDENTIALS_PATH does not exist: {cred_path}")

    with open(cred_path, "r") as f:
        cred_data = json.load(f)

    missing_fields = [field for field in REQUIRED_CREDENTIAL_FIELDS if not cred_data.get(field)]
    if missing_fields:
        raise ValueError(f"Service account key {cred_path} is missing {missing_fields}")
    return cred_data


def initialize_firestore() -> firestore.Client:
    global db

    if db is not None:
        return db

    if settings.USE_MOCK_DB:
        from app.config.mock_firestore import get_mock_db
        db = get_mock_db(settings.MOCK_DB_PATH)
        logger.info("[FIRESTORE] USING MOCK DATABASE")
        return db

    try:
        if not firebase_admin._apps:
            if settings.FIREBASE_CREDENTIALS_PATH:
                cred_data = _load_service_account(settings.FIREBASE_CREDENTIALS_PATH)
                initialize_app(credentials.Certificate(cred_data))
                logger.info(f"[FIRESTORE] Service account for project {cred_data['project_id']}")
            else:
                initialize_app()
                logger.info("[FIRESTORE] Application Default Credentials")

        db = firestore.client()
    except (OSError, ValueError) as e:
        raise RuntimeError(f"Firestore initialization failed: {e}") from e

    logger.info(f"[FIRESTORE] Connected to {settings.FIREBASE_PROJECT_ID or 'default project'}")
    return db


def get_db() -> firestore.Client:
    """Return the Firestore client, initializing it on first use."""
    if db is None:
        initialize_firestore()
    return db


def reset_db() -> None:
    """Drop the cached client so the next get_db() re-initializes."""
    global db
    db = None
