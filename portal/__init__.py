"""
Hospital administration portal.

Departments, user accounts, doctors, patients, tests and reports behind a
role-gated JSON API.  The account bootstrap flows live in
:mod:`portal.services.provisioning` and :mod:`portal.services.sessions`;
route protection lives in :mod:`portal.guards`.
"""
