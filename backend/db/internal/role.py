from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class InternalPermission(Base):
    __tablename__ = "internal_permissions"

    id = Column(Integer, primary_key=True)
    slug = Column(String, nullable=False, unique=True, index=True)  # e.g. 'leads.manage'
    module = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "module": self.module,
            "description": self.description,
        }


class InternalRolePermission(Base):
    """Association object between InternalRole and InternalPermission"""
    __tablename__ = "internal_role_permissions"

    role_id = Column(Integer, ForeignKey("internal_roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(Integer, ForeignKey("internal_permissions.id", ondelete="CASCADE"), primary_key=True)

    role = relationship("InternalRole", back_populates="permissions")
    permission = relationship("InternalPermission")


class InternalRole(Base):
    __tablename__ = "internal_roles"

    id = Column(Integer, primary_key=True)
    # Always stored upper-cased
    name = Column(String, nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())

    permissions = relationship(
        "InternalRolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
    )
    users = relationship("InternalUser", back_populates="internal_role")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "permissions": [
                {"permission": rp.permission.to_schema}
                for rp in sorted(self.permissions, key=lambda rp: rp.permission_id)
            ],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
