from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class WalletCreditRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field("Admin credit", max_length=255)


class ConfigUpdateRequest(BaseModel):
    value: Any


class ConfigResponse(BaseModel):
    key: str
    value: Any
    updated_by: Optional[UUID] = None
