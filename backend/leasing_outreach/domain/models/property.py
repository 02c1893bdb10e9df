"""
Property and Organization Models
"""
from pydantic import BaseModel, Field
from typing import List, Optional


class Property(BaseModel):
    """Rental unit as seen by outreach content selection"""

    id: str
    organization_id: Optional[str] = None
    address: str = ""
    unit_number: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    rent_price: Optional[float] = None
    status: str = "available"
    section_8_accepted: bool = False
    alternative_property_ids: List[str] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    @property
    def is_available(self) -> bool:
        return self.status == "available"

    @property
    def label(self) -> str:
        if self.unit_number:
            return f"{self.address} Unit {self.unit_number}"
        return self.address

    def describe(self) -> str:
        """Short spoken description, e.g. '2 bedroom at 123 Main St for $1,200/month'."""
        parts = []
        if self.bedrooms is not None:
            parts.append(f"{self.bedrooms} bedroom")
        parts.append(f"at {self.label}")
        if self.rent_price is not None:
            parts.append(f"for ${self.rent_price:,.0f}/month")
        return " ".join(parts)


class Organization(BaseModel):
    """Tenant account that owns leads, properties and settings"""

    id: str
    name: str = ""
    phone: Optional[str] = None
    owner_email: Optional[str] = None
    sms_from_number: Optional[str] = None
    email_from_address: Optional[str] = None

    model_config = {"extra": "ignore"}
