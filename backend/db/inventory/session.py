from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


SESSION_OPEN = "Aberto"
SESSION_CLOSED = "Fechado"


class InventorySession(Base):
    __tablename__ = "sessoes_inventario"
    __table_args__ = (
        UniqueConstraint("tenant_id", "numero", name="ux_sessoes_inventario_tenant_numero"),
    )

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)

    # Sequential per tenant, starting at 1
    numero = Column(Integer, nullable=False)
    nome = Column(String, nullable=False)
    # 'Total' | 'Calculadora' | 'Personalizado'
    tipo = Column(Text, nullable=False)
    # 'Aberto' | 'Fechado'
    status = Column(Text, nullable=False, default=SESSION_OPEN, index=True)
    filtros_usados = Column(JSON, nullable=True)

    criado_por = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    fechado_por = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    data_fim = Column(DateTime, nullable=True)

    itens = relationship("InventoryItem", back_populates="sessao", cascade="all, delete-orphan")

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_OPEN

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "numero": self.numero,
            "nome": self.nome,
            "tipo": self.tipo,
            "status": self.status,
            "filtros_usados": self.filtros_usados,
            "criado_por": self.criado_por,
            "fechado_por": self.fechado_por,
            "created_at": self.created_at,
            "data_fim": self.data_fim,
        }
