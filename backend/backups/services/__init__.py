from .backup_service import (
    BackupDecryptionError,
    BackupError,
    BackupIntegrityError,
    BackupService,
    RestoreNotConfirmed,
)

__all__ = [
    "BackupService",
    "BackupError",
    "BackupIntegrityError",
    "BackupDecryptionError",
    "RestoreNotConfirmed",
]
