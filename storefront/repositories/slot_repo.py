from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from storefront.models.storage_slot import StorageSlot


class SlotRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, name: str) -> Optional[StorageSlot]:
        return self.db.query(StorageSlot).filter(StorageSlot.name == name).first()

    def put(self, name: str, value: Any):
        # bulk update so a corrupt stored value is overwritten without being loaded
        updated = (
            self.db.query(StorageSlot)
            .filter(StorageSlot.name == name)
            .update(
                {"value": value, "updated_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        if not updated:
            self.db.add(StorageSlot(name=name, value=value))
        self.db.flush()

    def delete(self, name: str):
        self.db.query(StorageSlot).filter(StorageSlot.name == name).delete(synchronize_session=False)
        self.db.flush()
