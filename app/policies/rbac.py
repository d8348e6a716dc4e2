#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class Principal:
    """
    Acting user, passed explicitly into every service call.
    department_ids are the departments the user is assigned to.
    """
    user_id: int
    username: str
    department_ids: Tuple[int, ...] = field(default_factory=tuple)
    display_name: str = ""

    def in_department(self, department_id) -> bool:
        return bool(department_id) and department_id in self.department_ids
