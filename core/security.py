"""
Security utilities for the listing editor.

Provides form nonces and audit logging for listing changes.
"""

import logging
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from enum import Enum

import jwt

from core.config import settings

logger = logging.getLogger("security.audit")


class AuditAction(str, Enum):
    """Audit log action types."""
    UPDATE = "UPDATE"
    EXPIRE = "EXPIRE"
    REACTIVATE = "REACTIVATE"
    REASSIGN_AUTHOR = "REASSIGN_AUTHOR"


class ResourceType(str, Enum):
    """Resource types for audit logging."""
    JOB_LISTING = "JOB_LISTING"


def log_audit_event(
    action: AuditAction,
    resource_type: ResourceType,
    resource_id: Optional[str] = None,
    user_id: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Log an audit event for listing changes.

    This creates a structured log entry suitable for SIEM ingestion.
    """
    event = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": "AUDIT",
        "action": action.value,
        "resource_type": resource_type.value,
        "resource_id": str(resource_id) if resource_id is not None else None,
        "user_id": user_id,
        "details": details,
    }

    logger.info(json.dumps(event))
    return event


# ==================== Nonces ===================== #

def create_nonce(action: str, user_id: Optional[int], lifetime_seconds: Optional[int] = None) -> str:
    """
    Create a signed, expiring nonce tying a form to an action and a user.

    Args:
        action: Action the form performs (e.g. "save_meta_data")
        user_id: Acting user, None for anonymous
        lifetime_seconds: Override for the configured lifetime

    Returns:
        Encoded nonce token
    """
    lifetime = lifetime_seconds if lifetime_seconds is not None else settings.nonce_lifetime_seconds
    issued = datetime.now(timezone.utc)
    payload = {
        "act": action,
        "uid": user_id or 0,
        "iat": issued,
        "exp": issued + timedelta(seconds=lifetime),
    }
    return jwt.encode(payload, settings.nonce_secret_key, algorithm=settings.nonce_algorithm)


def verify_nonce(token: Optional[str], action: str, user_id: Optional[int]) -> bool:
    """
    Verify a nonce for the given action and user.

    Returns False for missing, expired, tampered or mismatched nonces.
    """
    if not token:
        return False
    try:
        payload = jwt.decode(
            token,
            settings.nonce_secret_key,
            algorithms=[settings.nonce_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.debug(f"Expired nonce for action {action}")
        return False
    except jwt.InvalidTokenError:
        logger.debug(f"Invalid nonce for action {action}")
        return False

    return payload.get("act") == action and payload.get("uid") == (user_id or 0)
