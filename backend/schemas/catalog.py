from typing import Optional

from pydantic import BaseModel, field_validator


class FamilyCreate(BaseModel):
    nome: str

    @field_validator("nome")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class SubfamilyCreate(BaseModel):
    familia_id: int
    nome: str

    @field_validator("nome")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class ProductCreate(BaseModel):
    nome: str
    unidade_medida: str = "un"
    subfamilia_id: Optional[int] = None

    @field_validator("nome", "unidade_medida")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class ProductUpdate(BaseModel):
    nome: Optional[str] = None
    unidade_medida: Optional[str] = None
    subfamilia_id: Optional[int] = None
    ativo: Optional[bool] = None

    @field_validator("nome", "unidade_medida")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class ProductVariationCreate(BaseModel):
    nome: str
    unidade_medida: Optional[str] = None
    fator_conversao: float = 1.0

    @field_validator("nome")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v

    @field_validator("fator_conversao")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("fator_conversao must be > 0")
        return v
