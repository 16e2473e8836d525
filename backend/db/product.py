from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Product(Base):
    """Product model - tenant catalog entry that inventory sessions count"""
    __tablename__ = "produtos"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    subfamilia_id = Column(Integer, ForeignKey("subfamilias.id", ondelete="SET NULL"), nullable=True, index=True)

    nome = Column(String, nullable=False)
    unidade_medida = Column(String, nullable=False, default="un")
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    subfamilia = relationship("Subfamily", back_populates="produtos")
    variacoes = relationship("ProductVariation", back_populates="produto", cascade="all, delete-orphan")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "nome": self.nome,
            "unidade_medida": self.unidade_medida,
            "subfamilia_id": self.subfamilia_id,
            "ativo": bool(self.ativo),
        }


class ProductVariation(Base):
    """Purchase/packaging variation of a product (e.g. a 6-pack of the same bottle)"""
    __tablename__ = "variacoes_produto"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    produto_id = Column(Integer, ForeignKey("produtos.id", ondelete="CASCADE"), nullable=False, index=True)

    nome = Column(String, nullable=False)
    unidade_medida = Column(String, nullable=True)
    # How many base units of the product one unit of this variation holds.
    fator_conversao = Column(Numeric(12, 4), nullable=False, default=1)
    ativo = Column(Boolean, nullable=False, default=True)

    produto = relationship("Product", back_populates="variacoes")

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "produto_id": self.produto_id,
            "nome": self.nome,
            "unidade_medida": self.unidade_medida,
            "fator_conversao": float(self.fator_conversao) if self.fator_conversao is not None else None,
            "ativo": bool(self.ativo),
        }
