"""Service layer: application use cases orchestrated over units of work.

Subpackages
-----------
- ``_shared``: base service, errors, role policies and infrastructure ports.
- ``identity``: credential verification and profile management.
- ``auth``: sign-up, sign-in, refresh rotation and sign-out.
- ``users``: privileged identity administration (roles, status, deletion).
- ``audit``: append-only audit recording and queries.

Import services from their modules; this package stays import-light so models
can depend on :mod:`subtrack.services._shared.errors` without cycles.
"""
