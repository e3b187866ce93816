"""
Database router for an optional read replica.

Enabled from settings when ``DB_REPLICA_URL`` is set.  Reads go to the
replica, writes and migrations to ``default``.  The replica may lag the
primary by a few seconds, which is why the profile lookups in the auth
flows are retried.
"""
from __future__ import annotations

REPLICA_ALIAS = 'replica'
PRIMARY_ALIAS = 'default'


class ReadReplicaRouter:
    def db_for_read(self, model, **hints):
        return REPLICA_ALIAS

    def db_for_write(self, model, **hints):
        return PRIMARY_ALIAS

    def allow_relation(self, obj1, obj2, **hints):
        # both aliases point at the same logical database
        return True

    def allow_migrate(self, db, app_label, model_name=None, **hints):
        return db == PRIMARY_ALIAS
