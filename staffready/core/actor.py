"""
The acting user behind a service call.

Authentication happens upstream; services only need the identity, tenant
and role of whoever triggered the operation.  Scheduled sweeps act with no
actor at all.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from staffready.models import Role


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    organization_id: uuid.UUID
    role: Role

    @property
    def is_clinician(self) -> bool:
        return self.role == Role.CLINICIAN

    @property
    def is_staff(self) -> bool:
        return self.role != Role.CLINICIAN
