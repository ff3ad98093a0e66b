"""Services package."""
from lead_intelligence.services.field_decryption import (
    FieldDecryptor,
    FernetFieldDecryptor,
    FieldDecryptionError,
    DecryptedField,
    FieldError,
    FieldResult,
    decrypt_field,
)
from lead_intelligence.services.signal_collector import SignalCollector, CollectedSignals
from lead_intelligence.services.subject_lock import (
    SubjectLock,
    InMemorySubjectLock,
    MongoSubjectLock,
    get_subject_lock,
)

__all__ = [
    "FieldDecryptor",
    "FernetFieldDecryptor",
    "FieldDecryptionError",
    "DecryptedField",
    "FieldError",
    "FieldResult",
    "decrypt_field",
    "SignalCollector",
    "CollectedSignals",
    "SubjectLock",
    "InMemorySubjectLock",
    "MongoSubjectLock",
    "get_subject_lock",
]
