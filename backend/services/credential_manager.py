"""OS keychain storage for the SnapTrade credentials and session signing key.

Values are kept under the ``asset-dashboard`` service name in whatever
backend ``keyring`` selects (macOS Keychain, Secret Service, Windows
Credential Locker, ...). ``config.KeychainSettingsSource`` reads them back
ahead of environment variables. ``keyring`` is imported on each call so
tests can swap it out through ``sys.modules``.
"""

import logging

logger = logging.getLogger(__name__)

SERVICE_NAME = "asset-dashboard"

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {
        "SNAPTRADE_CLIENT_ID",
        "SNAPTRADE_CONSUMER_KEY",
        "SESSION_SECRET_KEY",
    }
)


def _keyring():
    import keyring

    return keyring


def _check_key(key: str, action: str) -> bool:
    if key in CREDENTIAL_KEYS:
        return True
    logger.warning("Refusing to %s %s: not a keychain credential", action, key)
    return False


def get_credential(key: str) -> str | None:
    """Read a credential, returning None when it is absent or the backend errors."""
    try:
        return _keyring().get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Keychain read failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store a credential.

    Only names in :data:`CREDENTIAL_KEYS` with a non-blank value are
    accepted. Returns whether the value was written.
    """
    if not _check_key(key, "store"):
        return False
    if not value or not value.strip():
        logger.warning("Refusing to store blank value for %s", key)
        return False

    try:
        _keyring().set_password(SERVICE_NAME, key, value)
    except Exception:
        logger.warning("Keychain write failed for %s", key, exc_info=True)
        return False
    logger.info("Stored %s in keychain (%d chars)", key, len(value))
    return True


def delete_credential(key: str) -> bool:
    """Remove a credential. Returns whether anything was deleted."""
    if not _check_key(key, "delete"):
        return False

    try:
        _keyring().delete_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Keychain delete failed for %s", key, exc_info=True)
        return False
    logger.info("Deleted %s from keychain", key)
    return True


def list_credentials() -> dict[str, str]:
    """Every stored credential, keyed by name."""
    stored = {key: get_credential(key) for key in sorted(CREDENTIAL_KEYS)}
    return {key: value for key, value in stored.items() if value is not None}
