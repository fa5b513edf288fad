"""
Core app - shared building blocks for TaxDesk.

This app provides:
- TimeStampedModel / SoftDeleteModel: abstract model bases
- encryption / EncryptedCharField: Fernet field-level encryption for PII
- taxdesk_exception_handler: the API error envelope
- StandardPagination: list envelope
- request context (current actor, approval trigger suppression)
"""
