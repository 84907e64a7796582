# filevault/models/file.py
from sqlalchemy import BigInteger, Column, DateTime, String

from filevault.models.database import Base, CollectionRecord, utcnow


class FileMeta(CollectionRecord, Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), index=True, nullable=False)
    original_name = Column(String(255), nullable=False)  # Name user uploaded
    stored_name = Column(String(64), nullable=False)     # Blob name in storage
    size = Column(BigInteger, nullable=False)            # Size in bytes
    content_type = Column(String(255), nullable=False, default="application/octet-stream")
    folder_id = Column(String(36), nullable=True)        # None means the owner's root
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<FileMeta {self.original_name!r} ({self.id})>"
