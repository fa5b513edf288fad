from django.db import models

from core.encryption import decrypt_value, encrypt_value


class EncryptedCharField(models.CharField):
    """
    CharField stored as a Fernet token.

    `max_length` applies to the plaintext; the column is sized for the token.
    Lookups other than isnull are meaningless on the ciphertext.
    """

    def __init__(self, *args, **kwargs):
        self.plaintext_max_length = kwargs.get("max_length", 255)
        kwargs["max_length"] = max(255, self.plaintext_max_length * 4 + 120)
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        kwargs["max_length"] = self.plaintext_max_length
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        return decrypt_value(value)

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        if value is None:
            return value
        return encrypt_value(str(value))
