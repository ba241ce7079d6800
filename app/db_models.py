from datetime import datetime

from sqlalchemy import Column, DateTime, Text

from app.database import Base


class StorageItem(Base):
    """Durable key/value pair; values are opaque strings (usually JSON)."""
    __tablename__ = "storage_items"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
