# callwave/db/upsert.py
"""
INSERT ... ON CONFLICT helpers.

Rows written concurrently by the poller, the webhook and the manual status
check go through here, so a duplicate key never raises and there is no
window between an existence check and the insert.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def _insert_for(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model.__table__)
    if dialect == "sqlite":
        return sqlite.insert(model.__table__)
    raise NotImplementedError(f"Upsert not supported for dialect '{dialect}'")


def upsert(
    db: Session,
    model,
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
    update_columns: Optional[Iterable[str]] = None
) -> None:
    """
    Insert ``values`` into ``model``'s table in one statement.

    On a conflict on ``conflict_columns``:
    - with ``update_columns``: overwrite those columns from the proposed row
    - without: keep the existing row untouched (DO NOTHING)
    """
    stmt = _insert_for(db, model).values(**values)

    if update_columns:
        set_ = {column: stmt.excluded[column] for column in update_columns}
        if "updated_at" in model.__table__.c:
            set_["updated_at"] = datetime.utcnow()
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=set_)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))

    db.execute(stmt)
