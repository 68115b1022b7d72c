"""Service provider ORM model (contractors paid from the building accounts)."""

from enum import Enum

from sqlalchemy import Boolean, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class ServiceTrade(str, Enum):
    """Trade of a service provider."""

    ELECTRICIAN = "electrician"
    PLUMBER = "plumber"
    LOCKSMITH = "locksmith"
    PAINTER = "painter"
    CARPENTER = "carpenter"
    MASON = "mason"
    GARDENER = "gardener"
    CLEANING = "cleaning"
    SECURITY = "security"
    PEST_CONTROL = "pest_control"
    ELEVATOR = "elevator"
    GLAZIER = "glazier"
    AIR_CONDITIONING = "air_conditioning"
    GAS = "gas"
    UTILITY = "utility"
    OTHER = "other"


class ServiceProvider(Base, BaseModel):
    """Minimal provider record referenced by outgoing bank movements."""

    __tablename__ = "service_providers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    trade: Mapped[ServiceTrade] = mapped_column(
        SQLEnum(ServiceTrade),
        nullable=False,
        default=ServiceTrade.OTHER,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<ServiceProvider(id={self.id}, name={self.name!r}, trade={self.trade})>"


__all__ = ["ServiceProvider", "ServiceTrade"]
