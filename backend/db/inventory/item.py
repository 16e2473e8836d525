from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class InventoryItem(Base):
    __tablename__ = "itens_inventario"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    sessao_id = Column(
        Integer,
        ForeignKey("sessoes_inventario.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    produto_id = Column(Integer, ForeignKey("produtos.id", ondelete="CASCADE"), nullable=False, index=True)
    variacao_id = Column(Integer, ForeignKey("variacoes_produto.id", ondelete="SET NULL"), nullable=True)
    localizacao_id = Column(Integer, ForeignKey("localizacoes.id", ondelete="SET NULL"), nullable=True)

    quantidade_contada = Column(Numeric(14, 3), nullable=False, default=0)
    unidade_medida = Column(String, nullable=True)
    observacoes = Column(Text, nullable=True)

    contado_por = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True)

    sessao = relationship("InventorySession", back_populates="itens")
    produto = relationship("Product")
    variacao = relationship("ProductVariation")
    localizacao = relationship("Location")

    @property
    def stock_key(self) -> tuple[int, int]:
        """(produto_id, variacao_id) with 0 standing in for "no variation"."""
        return (int(self.produto_id), int(self.variacao_id or 0))
