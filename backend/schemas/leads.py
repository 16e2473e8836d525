from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, field_validator


BusinessType = Literal[
    "restaurante_independente",
    "restaurante_fine_dining",
    "hotel",
    "grupo_cadeia",
]
LeadStatus = Literal[
    "new",
    "contacted",
    "qualified",
    "proposal_sent",
    "demo_scheduled",
    "won",
    "lost",
    "rejected",
]


class LeadCreate(BaseModel):
    name: str
    email: EmailStr
    business_type: BusinessType
    source_page: str = "landing"
    source_cta: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = (v or "").strip()
        if len(v) < 2 or len(v) > 100:
            raise ValueError("name must have between 2 and 100 characters")
        return v


class LeadStatusUpdate(BaseModel):
    status: LeadStatus
    notes: Optional[str] = None
