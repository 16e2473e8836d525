from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class InternalUser(Base):
    """Company staff account used by the internal back-office tools"""
    __tablename__ = "internal_users"

    id = Column(Integer, primary_key=True)
    uuid = Column(UUID(as_uuid=True), nullable=False, unique=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)

    # Legacy free-text role name, kept in sync with internal_role.name
    role = Column(String, nullable=True)
    internal_role_id = Column(
        Integer,
        ForeignKey("internal_roles.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    internal_role = relationship("InternalRole", back_populates="users")

    @property
    def to_schema(self):
        """Never includes password_hash"""
        return {
            "id": self.id,
            "uuid": self.uuid,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "internal_role_id": self.internal_role_id,
            "active": bool(self.active),
            "email_verified": bool(self.email_verified),
            "last_login_at": self.last_login_at,
            "created_at": self.created_at,
        }
