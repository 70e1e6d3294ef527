"""
Supplier model - a shipping origin (own warehouse or dropshipper).
"""
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from storefront.core.config import settings
from storefront.core.database import Base, JSONType, new_id, utc_now


class SupplierType(str, Enum):
    LOCAL_STOCK = "LOCAL_STOCK"
    DROPSHIPPER = "DROPSHIPPER"
    OTHER = "OTHER"


class Incoterm(str, Enum):
    DDP = "DDP"
    DDU = "DDU"


class Supplier(Base):
    """Shipping origin with its postal address and customs incoterm."""

    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), default=SupplierType.LOCAL_STOCK.value)
    incoterm: Mapped[str] = mapped_column(String(10), default=Incoterm.DDU.value)

    # name, street1, street2, city, state, zip, country, email, phone
    address: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    default_currency: Mapped[str] = mapped_column(
        String(3),
        default=lambda: settings.site_currency,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
    )

    def __repr__(self) -> str:
        return f"<Supplier {self.name}>"
