"""Report notice service: per-period statement notices and the footer."""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from condo_ledger.config import settings
from condo_ledger.errors import NotFoundError
from condo_ledger.models.report_notice import ReportNotice, ReportSetting
from condo_ledger.services.db import atomic

logger = logging.getLogger(__name__)

FOOTER_KEY = "report_footer"


class ReportNoticeService:
    """CRUD for monthly statement notices and report settings."""

    def __init__(self, db: Session):
        self.db = db

    def list_notices(self, month: int, year: int, active_only: bool = False) -> list[ReportNotice]:
        """Notices of a period in display order."""
        stmt = select(ReportNotice).where(ReportNotice.month == month, ReportNotice.year == year)
        if active_only:
            stmt = stmt.where(ReportNotice.is_active.is_(True))
        stmt = stmt.order_by(ReportNotice.order.asc(), ReportNotice.id.asc())
        return list(self.db.scalars(stmt))

    def get(self, notice_id: int) -> ReportNotice:
        notice = self.db.get(ReportNotice, notice_id)
        if notice is None:
            raise NotFoundError("ReportNotice", notice_id)
        return notice

    def create(self, text: str, month: int, year: int) -> ReportNotice:
        """Append a notice after the period's last one."""
        with atomic(self.db, "create_notice"):
            last = self.db.scalar(
                select(func.max(ReportNotice.order)).where(
                    ReportNotice.month == month, ReportNotice.year == year
                )
            )
            notice = ReportNotice(
                text=text,
                month=month,
                year=year,
                order=0 if last is None else last + 1,
                is_active=True,
            )
            self.db.add(notice)
        logger.info("Created notice %d for %d-%02d", notice.id, year, month)
        return notice

    def update(
        self, notice_id: int, text: str | None = None, is_active: bool | None = None
    ) -> ReportNotice:
        notice = self.get(notice_id)
        with atomic(self.db, "update_notice"):
            if text is not None:
                notice.text = text
            if is_active is not None:
                notice.is_active = is_active
        return notice

    def delete(self, notice_id: int) -> None:
        notice = self.get(notice_id)
        with atomic(self.db, "delete_notice"):
            self.db.delete(notice)
        logger.info("Deleted notice %d", notice_id)

    def reorder(self, orders: list[tuple[int, int]]) -> None:
        """Set the display order of several notices in one transaction.

        Args:
            orders: (notice_id, order) pairs
        """
        with atomic(self.db, "reorder_notices"):
            for notice_id, order in orders:
                self.get(notice_id).order = order

    def get_footer(self) -> str:
        value = self.db.scalar(select(ReportSetting.value).where(ReportSetting.key == FOOTER_KEY))
        return value if value is not None else settings.report_footer_default

    def set_footer(self, text: str) -> str:
        with atomic(self.db, "set_footer"):
            setting = self.db.scalar(select(ReportSetting).where(ReportSetting.key == FOOTER_KEY))
            if setting is None:
                self.db.add(ReportSetting(key=FOOTER_KEY, value=text))
            else:
                setting.value = text
        return text


__all__ = ["ReportNoticeService", "FOOTER_KEY"]
