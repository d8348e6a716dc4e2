# app/services/department_tree.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.errors import DataCorruptionError
from app.models.department import Department

logger = logging.getLogger(__name__)


class DepartmentTree:
    """
    Read-only view over the department forest.

    Path resolution is an explicit loop with a hop limit. A cycle or an
    over-deep chain is logged as data corruption and the partial path
    collected so far is returned; nothing is raised to the caller.
    """

    def __init__(self, max_depth: Optional[int] = None, separator: Optional[str] = None):
        settings = get_settings()
        self.max_depth = max_depth if max_depth is not None else settings.department_path_max_depth
        self.separator = separator if separator is not None else settings.location_separator

    # ─────────────────────────────────────────────
    # INTERNAL HELPERS
    # ─────────────────────────────────────────────

    def _fetch(self, db: Session, department_id: int) -> Optional[Tuple[str, Optional[int]]]:
        row = db.execute(
            select(Department.name, Department.parent_id).where(Department.id == department_id)
        ).first()
        if row is None:
            return None
        return row.name, row.parent_id

    def _report_corruption(self, start_id: Optional[int], reason: str, partial: List[str]) -> None:
        err = DataCorruptionError(f"department chain from {start_id}: {reason}")
        logger.warning(
            "[department-tree] %s; truncating path at %d segment(s)",
            err,
            len(partial),
            extra={"start_department_id": start_id, "partial_path": list(partial)},
        )

    # ─────────────────────────────────────────────
    # PUBLIC API
    # ─────────────────────────────────────────────

    def resolve_ancestor_path(
        self,
        db: Session,
        *,
        department_id: Optional[int],
        sub_department_id: Optional[int] = None,
    ) -> List[str]:
        """
        Department names root-to-leaf.

        A found sub-department is the leaf and its parent replaces
        department_id as the walk start; a missing one is ignored.
        """
        leaf_to_root: List[str] = []
        seen: set[int] = set()
        start = sub_department_id or department_id

        current = department_id
        if sub_department_id:
            sub = self._fetch(db, sub_department_id)
            if sub is not None:
                name, parent_id = sub
                leaf_to_root.append(name)
                seen.add(sub_department_id)
                # a null parent on a sub-department keeps the caller's department
                current = parent_id or department_id

        hops = 0
        while current:
            if current in seen:
                self._report_corruption(start, f"cycle at department {current}", leaf_to_root)
                break
            if hops >= self.max_depth:
                self._report_corruption(start, f"exceeds max depth {self.max_depth}", leaf_to_root)
                break

            found = self._fetch(db, current)
            if found is None:
                # broken parent link: best-effort partial path
                logger.debug("[department-tree] department %s not found; stopping walk", current)
                break

            name, parent_id = found
            leaf_to_root.append(name)
            seen.add(current)
            current = parent_id
            hops += 1

        return list(reversed(leaf_to_root))

    def format_path(self, names: Iterable[str]) -> str:
        return self.separator.join(n for n in names if n)

    def resolve_path_string(
        self,
        db: Session,
        *,
        department_id: Optional[int],
        sub_department_id: Optional[int] = None,
    ) -> str:
        return self.format_path(
            self.resolve_ancestor_path(
                db, department_id=department_id, sub_department_id=sub_department_id
            )
        )
