from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


InventorySessionType = Literal["Total", "Calculadora", "Personalizado"]
InventorySessionStatus = Literal["Aberto", "Fechado"]
CalculatorItemType = Literal["receita", "combo", "produto"]


class InventorySessionFilters(BaseModel):
    familia_id: Optional[int] = None
    subfamilia_id: Optional[int] = None
    localizacao_id: Optional[int] = None
    lista_calculadora_id: Optional[int] = None


class InventorySessionCreate(BaseModel):
    tipo: InventorySessionType
    nome: Optional[str] = None
    filtros: Optional[InventorySessionFilters] = None

    @field_validator("nome")
    @classmethod
    def _strip_nullable(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class InventoryItemUpdate(BaseModel):
    # Negative or duplicate counts are accepted as-is.
    quantidade: Decimal
    localizacao_id: Optional[int] = None
    variacao_id: Optional[int] = None
    observacoes: Optional[str] = None


class InventoryItemAdd(BaseModel):
    produto_id: int


class LocationCreate(BaseModel):
    nome: str
    descricao: Optional[str] = None

    @field_validator("nome")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class CalculatorListItem(BaseModel):
    # Inventory counts products; `id` is a product id.
    tipo: CalculatorItemType = "produto"
    id: int
    quantidade: float


class CalculatorListCreate(BaseModel):
    nome: str
    itens: List[CalculatorListItem]

    @field_validator("nome")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class InventorySessionOut(BaseModel):
    id: int
    numero: int
    nome: str
    tipo: InventorySessionType
    status: InventorySessionStatus
    filtros_usados: Optional[dict] = None
    criado_por: Optional[UUID] = None
    fechado_por: Optional[UUID] = None
    created_at: Optional[datetime] = None
    data_fim: Optional[datetime] = None


class InventoryItemOut(BaseModel):
    id: int
    sessao_id: int
    produto_id: int
    produto_nome: Optional[str] = None
    variacao_id: Optional[int] = None
    variacao_nome: Optional[str] = None
    localizacao_id: Optional[int] = None
    localizacao_nome: Optional[str] = None
    quantidade_contada: float
    unidade_medida: Optional[str] = None
    observacoes: Optional[str] = None
    contado_por: Optional[UUID] = None


class InventorySessionDetail(InventorySessionOut):
    itens: List[InventoryItemOut] = []


class TheoreticalStockOut(BaseModel):
    produto_id: int
    produto_nome: Optional[str] = None
    variacao_id: int
    quantidade_atual: float
    valor_total: float
    data_ultima_atualizacao: Optional[datetime] = None
