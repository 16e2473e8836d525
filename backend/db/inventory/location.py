from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from ..database import Base


class Location(Base):
    __tablename__ = "localizacoes"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    nome = Column(String, nullable=False)
    descricao = Column(Text, nullable=True)
    ativo = Column(Boolean, nullable=False, default=True)

    @property
    def to_schema(self):
        return {
            "id": self.id,
            "nome": self.nome,
            "descricao": self.descricao,
            "ativo": bool(self.ativo),
        }
