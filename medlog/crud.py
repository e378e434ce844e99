from typing import Iterable, Optional

from sqlalchemy.orm import Session

from . import models


def get_entry(db: Session, key: str) -> Optional[str]:
    row = db.query(models.KeyValueEntry).filter(models.KeyValueEntry.key == key).first()
    return row.value if row else None


def put_entry(db: Session, key: str, value: str):
    row = db.query(models.KeyValueEntry).filter(models.KeyValueEntry.key == key).first()
    if row is None:
        row = models.KeyValueEntry(key=key, value=value)
        db.add(row)
    else:
        row.value = value
    db.commit()
    return row


def delete_entries(db: Session, keys: Iterable[str]) -> int:
    deleted = (
        db.query(models.KeyValueEntry)
        .filter(models.KeyValueEntry.key.in_(list(keys)))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
