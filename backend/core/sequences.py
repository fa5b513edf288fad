"""
Gap-tolerant counters for contact and case numbers.

next_value() holds a row lock on the Sequence until the surrounding
transaction ends, so concurrent saves never receive the same number.
"""
from django.db import IntegrityError, transaction

from .models import Sequence


def next_value(name: str, floor=None) -> int:
    """
    Allocate the next value of the named sequence.

    `floor` returns the smallest acceptable value, computed from the rows
    already stored. It is read under the lock so restored or hand-numbered
    rows are skipped instead of reused.
    """
    with transaction.atomic():
        try:
            seq = Sequence.objects.select_for_update().get(name=name)
        except Sequence.DoesNotExist:
            try:
                with transaction.atomic():
                    seq = Sequence.objects.create(name=name, next_value=1)
            except IntegrityError:
                seq = Sequence.objects.select_for_update().get(name=name)

        value = seq.next_value
        if floor is not None:
            value = max(value, floor())
        seq.next_value = value + 1
        seq.save(update_fields=["next_value", "updated_at"])
        return value
