"""Report annotation models: per-period notices and report settings."""

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from condo_ledger.models import Base, BaseModel


class ReportNotice(Base, BaseModel):
    """Free-text notice printed on the monthly statement of one period."""

    __tablename__ = "report_notices"

    text: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_notice_period", "year", "month"),)

    def __repr__(self) -> str:
        return (
            f"<ReportNotice(id={self.id}, period={self.year}-{self.month:02d}, "
            f"order={self.order}, is_active={self.is_active})>"
        )


class ReportSetting(Base, BaseModel):
    """Key/value report configuration (e.g., the statement footer)."""

    __tablename__ = "report_settings"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<ReportSetting(key={self.key!r}, value={self.value!r})>"


__all__ = ["ReportNotice", "ReportSetting"]
