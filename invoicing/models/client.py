from __future__ import annotations
from pydantic import BaseModel
from typing import Optional
from .common import TimeStamped

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

class ClientData(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    tax_id: Optional[str] = None
    address: Optional[Address] = None

    class Config:
        extra = "ignore"

class Client(TimeStamped, ClientData):
    def search_terms(self) -> list[str]:
        return [v.lower() for v in (self.name, self.email, self.company) if v]
