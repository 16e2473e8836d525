from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from ..database import Base


class CalculatorList(Base):
    __tablename__ = "listas_calculadora"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    nome = Column(String, nullable=False)

    # [{"tipo": "produto", "id": <produto_id>, "quantidade": 2.5}, ...]
    itens = Column(JSON, nullable=False, default=list)

    criado_por = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    @property
    def product_ids(self) -> list[int]:
        """Ids of the `produto` items; recipe and combo ids live in other tables."""
        out: list[int] = []
        for it in self.itens or []:
            if not isinstance(it, dict) or it.get("id") is None:
                continue
            if it.get("tipo", "produto") != "produto":
                continue
            out.append(int(it["id"]))
        return out

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "nome": self.nome,
            "itens": list(self.itens or []),
            "criado_por": self.criado_por,
            "created_at": self.created_at,
        }
