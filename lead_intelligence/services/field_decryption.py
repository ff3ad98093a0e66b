"""
Field Decryption

Boundary to the CRM's field-level encryption. Every decrypt returns an
explicit FieldResult so callers branch on known/unknown values instead of
wrapping each field in its own try/except.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Union

from cryptography.fernet import Fernet, InvalidToken

from lead_intelligence.config import get_settings
from lead_intelligence.utils.metrics import metrics
from lead_intelligence.utils.observability import logger

MISSING = "missing"

# Purpose tags, as used by the CRM when the blobs were written
CONTACT_EMAIL = "contact:email"
EMAIL_PARTICIPANTS = "email:participants"
CALENDAR_ATTENDEES = "calendar:attendees"


class FieldDecryptionError(Exception):
    """Raised by decryptors when a blob cannot be turned into plaintext."""
    pass


@dataclass(frozen=True)
class DecryptedField:
    value: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FieldError:
    purpose: str
    reason: str

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_missing(self) -> bool:
        """No blob was stored; not a decryption failure."""
        return self.reason == MISSING


FieldResult = Union[DecryptedField, FieldError]


class FieldDecryptor(Protocol):
    """
    Protocol for org-scoped field decryption.

    Implement this to plug in a KMS-backed service.
    """

    async def decrypt(self, org_id: str, blob: bytes, purpose: str) -> bytes:
        """
        Decrypt one field.

        Args:
            org_id: Organization whose data key encrypted the blob
            blob: Ciphertext as stored
            purpose: Purpose tag, e.g. "contact:email"

        Returns:
            Plaintext bytes

        Raises:
            Exception: Any failure; callers convert it into a FieldError
        """
        ...


class FernetFieldDecryptor:
    """
    Decrypts Fernet tokens with one key per organization.

    Keys come from `ORG_ENCRYPTION_KEYS` unless passed explicitly.
    """

    def __init__(self, org_keys: Optional[Dict[str, str]] = None):
        keys = org_keys if org_keys is not None else get_settings().org_encryption_keys
        self._fernets: Dict[str, Fernet] = {org: Fernet(key) for org, key in keys.items()}

    @property
    def is_configured(self) -> bool:
        return bool(self._fernets)

    async def decrypt(self, org_id: str, blob: bytes, purpose: str) -> bytes:
        fernet = self._fernets.get(org_id)
        if fernet is None:
            raise FieldDecryptionError(f"No data key configured for org {org_id}")
        try:
            return fernet.decrypt(blob)
        except InvalidToken as e:
            raise FieldDecryptionError(f"Invalid token for {purpose}") from e


async def decrypt_field(
    decryptor: FieldDecryptor,
    org_id: str,
    blob: Optional[bytes],
    purpose: str
) -> FieldResult:
    """
    Decrypt and UTF-8 decode a field, never raising.

    A missing blob is reported as a FieldError too: the value is unknown either way.
    """
    if not blob:
        return FieldError(purpose=purpose, reason=MISSING)

    try:
        plaintext = await decryptor.decrypt(org_id, blob, purpose)
        return DecryptedField(value=plaintext.decode("utf-8"))
    except Exception as e:
        metrics.decryption_failures.inc(purpose=purpose)
        logger.bind(org_id=org_id, purpose=purpose).warning(f"Failed to decrypt {purpose}: {e}")
        return FieldError(purpose=purpose, reason=str(e))
