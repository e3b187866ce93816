from typing import Optional

from django.db.models import Count, ProtectedError
from rest_framework.exceptions import ValidationError

from portal.models import Department
from portal.services.audit import log_action


def list_departments():
    return Department.objects.annotate(user_count=Count('profiles')).order_by('name')


def create_department(actor, *, name: str, description: str = '', code: str = '') -> Department:
    dept = Department.objects.create(name=name, description=description or '', code=code or '')
    log_action(user=actor, action='department_create', object_type='department', object_id=dept.pk,
               detail={'name': name})
    return dept


def update_department(actor, dept: Department, *, name: Optional[str] = None,
                      description: Optional[str] = None, code: Optional[str] = None) -> Department:
    fields = []
    for attr, value in (('name', name), ('description', description), ('code', code)):
        if value is not None:
            setattr(dept, attr, value)
            fields.append(attr)
    if fields:
        dept.save(update_fields=fields + ['updated_at'])
        log_action(user=actor, action='department_update', object_type='department', object_id=dept.pk,
                   detail={'fields': fields})
    return dept


def delete_department(actor, dept: Department) -> None:
    dept_id = dept.pk
    try:
        dept.delete()
    except ProtectedError as exc:
        raise ValidationError('Department still has registered patients') from exc
    log_action(user=actor, action='department_delete', object_type='department', object_id=dept_id)
