"""Keep user identifiers and message text out of logs and audit keys.

User ids are replaced by a keyed HMAC-SHA256 digest so the same user
groups together in log searches without being recoverable. Message text
is only ever fingerprinted (unkeyed SHA-256) next to its length.

The key is configured once at service startup from PII_HASH_SALT, or
from Secrets Manager when PII_SALT_SECRET_ARN is set.
"""
import hashlib
import hmac
import logging
import os
from typing import Optional

import boto3

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32
DEV_SALT = "companion_safety_dev_salt_not_for_production"

_PII_SALT: Optional[bytes] = None


def configure_pii_salt(salt: str) -> None:
    """Set the hashing key for this process.

    Raises:
        ValueError: If salt is shorter than MIN_SALT_LENGTH characters
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_REJECTED",
            extra={"salt_length": len(salt or ""), "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt.encode()
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def load_pii_salt() -> str:
    """Resolve the salt from Secrets Manager or the environment.

    Falls back to DEV_SALT with a warning so local runs work unconfigured.
    """
    secret_arn = os.getenv("PII_SALT_SECRET_ARN")
    if secret_arn:
        client = boto3.client(
            "secretsmanager",
            region_name=os.getenv("AWS_REGION", "us-east-1"),
        )
        return client.get_secret_value(SecretId=secret_arn)["SecretString"]

    salt = os.getenv("PII_HASH_SALT")
    if salt:
        return salt

    logger.warning("PII_SALT_DEV_DEFAULT", extra={"env_var": "PII_HASH_SALT"})
    return DEV_SALT


def _utf8(value: str) -> bytes:
    # Lone surrogates are kept byte-for-byte rather than rejected
    return value.encode("utf-8", "surrogatepass")


def is_pii_salt_configured() -> bool:
    return _PII_SALT is not None


def hash_pii(value: str) -> str:
    """Keyed 64-char hex digest of a user identifier.

    Raises:
        RuntimeError: If configure_pii_salt() has not been called
    """
    if _PII_SALT is None:
        logger.critical("PII_HASH_WITHOUT_SALT", extra={"action": "call configure_pii_salt()"})
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    return hmac.new(_PII_SALT, _utf8(str(value)), hashlib.sha256).hexdigest()


def hash_text_for_audit(text: str) -> str:
    """Fingerprint of message text. Identical text gives an identical digest.

    Accepts any str, including lone surrogates from badly decoded input.
    """
    return hashlib.sha256(_utf8(text)).hexdigest()
