from sqlalchemy import Column, DateTime, String

from filevault.models.database import Base, CollectionRecord, utcnow


class User(CollectionRecord, Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)  # exact, case-sensitive
    display_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
