"""
Configuration module for PromiseSeal.

Centralizes all configuration with environment variable support.
"""

import os
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("PROMISESEAL_ENV", "dev")  # dev|stage|prod

# Relying-party identifier embedded in artifacts and matched against clientData.origin
RP_ID = os.getenv("PROMISESEAL_RP_ID", "localhost")

# Certificate authority
DEFAULT_AUTHORITY_SECRET = "promiseseal-cert-authority"
AUTHORITY_SECRET = os.getenv("PROMISESEAL_AUTHORITY_SECRET", DEFAULT_AUTHORITY_SECRET)
AUTHORITY_NAME = os.getenv("PROMISESEAL_AUTHORITY_NAME", "PromiseSeal Authority")

# Challenge registry TTL (seconds)
CHALLENGE_TTL_SECONDS = int(os.getenv("CHALLENGE_TTL_SECONDS", "300"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("LOG_JSON", "1").lower() in ("1", "true", "yes")
LOG_FILE = os.getenv("LOG_FILE") or None


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check configuration for deployment readiness.
    Returns dict of check name -> passed.
    """
    return {
        "rp_id_set": bool(RP_ID),
        "authority_secret_provisioned": not (
            is_production() and AUTHORITY_SECRET == DEFAULT_AUTHORITY_SECRET
        ),
        "challenge_ttl_positive": CHALLENGE_TTL_SECONDS > 0,
    }


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"
