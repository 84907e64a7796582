from sqlalchemy import Column, DateTime, String

from filevault.models.database import Base, CollectionRecord, utcnow


class Folder(CollectionRecord, Base):
    __tablename__ = "folders"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), index=True, nullable=False)
    name = Column(String(255), nullable=False)  # stored trimmed
    parent_id = Column(String(36), nullable=True)  # None means the owner's root
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Folder {self.name!r} ({self.id})>"
