from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from .database import Base


class Tenant(Base):
    """One restaurant account. Every tenant-facing row is scoped by tenant id."""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True)
    nome = Column(String, nullable=False)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "nome": self.nome,
            "ativo": bool(self.ativo),
        }
