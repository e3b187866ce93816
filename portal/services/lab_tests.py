"""
Test type catalogue of a department.

Subtypes are edited as a whole list: entries with an ``id`` are renamed,
entries without one are inserted, and stored subtypes missing from the
list are deleted.
"""
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import ProtectedError
from rest_framework.exceptions import ValidationError

from portal.models import TestSubtype, TestType
from portal.services.audit import log_action


def list_test_types(department_id: Optional[int]):
    return (TestType.objects.filter(department_id=department_id)
            .prefetch_related('subtypes').order_by('name'))


@transaction.atomic
def create_test_type(actor, department_id: Optional[int], *, name: str, subtypes: Iterable[str] = ()) -> TestType:
    if not department_id:
        raise ValidationError('Failed to get department information')
    names = [s.strip() for s in subtypes if s and s.strip()]
    test_type = TestType.objects.create(department_id=department_id, name=name, has_subtypes=bool(names))
    TestSubtype.objects.bulk_create([TestSubtype(test_type=test_type, name=n) for n in names])
    log_action(user=actor, action='test_type_create', object_type='test_type', object_id=test_type.pk,
               detail={'subtypes': len(names)})
    return test_type


@transaction.atomic
def update_test_type(actor, test_type: TestType, *, name: str, subtypes: Iterable[dict]) -> TestType:
    wanted = [s for s in subtypes if (s.get('name') or '').strip()]
    keep_ids = {s['id'] for s in wanted if s.get('id')}

    existing = {s.pk: s for s in test_type.subtypes.all()}
    unknown = keep_ids - set(existing)
    if unknown:
        raise ValidationError({'subtypes': [f'Unknown subtype id(s): {sorted(unknown)}']})

    removed = [pk for pk in existing if pk not in keep_ids]
    if removed:
        TestSubtype.objects.filter(pk__in=removed).delete()

    for item in wanted:
        if item.get('id'):
            sub = existing[item['id']]
            if sub.name != item['name']:
                sub.name = item['name']
                sub.save(update_fields=['name', 'updated_at'])
        else:
            TestSubtype.objects.create(test_type=test_type, name=item['name'])

    test_type.name = name
    test_type.has_subtypes = bool(wanted)
    test_type.save(update_fields=['name', 'has_subtypes', 'updated_at'])
    log_action(user=actor, action='test_type_update', object_type='test_type', object_id=test_type.pk,
               detail={'removed': removed, 'subtypes': len(wanted)})
    return test_type


def delete_test_type(actor, test_type: TestType) -> None:
    pk = test_type.pk
    try:
        test_type.delete()
    except ProtectedError as exc:
        raise ValidationError('Test type is assigned to patients') from exc
    log_action(user=actor, action='test_type_delete', object_type='test_type', object_id=pk)
