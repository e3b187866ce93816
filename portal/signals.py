"""
Auth state change notifications.

``auth_state_changed`` is sent by :class:`portal.services.identity.SessionStore`
whenever a session is opened or closed.  Receivers get ``event`` (one of
``SIGNED_IN`` / ``SIGNED_OUT``), ``principal`` and ``context`` keyword
arguments.  Route guards listen to it to drop decisions that became stale.
"""
from django.dispatch import Signal

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'

auth_state_changed = Signal()
