from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class TheoreticalStock(Base):
    __tablename__ = "stock_teorico"

    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    produto_id = Column(Integer, ForeignKey("produtos.id", ondelete="CASCADE"), primary_key=True)
    # 0 when the count was not tied to a variation, so this cannot be a FK.
    variacao_id = Column(Integer, primary_key=True, default=0)

    quantidade_atual = Column(Numeric(14, 3), nullable=False, default=0)
    valor_total = Column(Numeric(14, 2), nullable=False, default=0)
    data_ultima_atualizacao = Column(DateTime, nullable=False, server_default=func.now())

    produto = relationship("Product")
