from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .database import Base


class Family(Base):
    __tablename__ = "familias"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    nome = Column(String, nullable=False)

    subfamilias = relationship("Subfamily", back_populates="familia", cascade="all, delete-orphan")

    @property
    def to_schema(self):
        return {"id": self.id, "nome": self.nome}


class Subfamily(Base):
    __tablename__ = "subfamilias"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    familia_id = Column(Integer, ForeignKey("familias.id", ondelete="CASCADE"), nullable=False, index=True)
    nome = Column(String, nullable=False)

    familia = relationship("Family", back_populates="subfamilias")
    produtos = relationship("Product", back_populates="subfamilia")

    @property
    def to_schema(self):
        return {"id": self.id, "familia_id": self.familia_id, "nome": self.nome}
