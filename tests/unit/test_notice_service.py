"""Unit tests for report notices and the report footer."""

import pytest

from condo_ledger.errors import NotFoundError
from condo_ledger.services.notice_service import ReportNoticeService


@pytest.fixture
def service(db_session):
    return ReportNoticeService(db_session)


class TestNotices:
    def test_new_notice_goes_last(self, service):
        first = service.create("Elevator maintenance", 3, 2025)
        second = service.create("Assembly on the 20th", 3, 2025)
        other = service.create("Unrelated", 4, 2025)

        assert (first.order, second.order, other.order) == (0, 1, 0)
        assert [n.text for n in service.list_notices(3, 2025)] == [
            "Elevator maintenance",
            "Assembly on the 20th",
        ]

    def test_reorder(self, service):
        a = service.create("A", 3, 2025)
        b = service.create("B", 3, 2025)
        c = service.create("C", 3, 2025)

        service.reorder([(c.id, 0), (a.id, 1), (b.id, 2)])

        assert [n.text for n in service.list_notices(3, 2025)] == ["C", "A", "B"]

    def test_inactive_hidden_when_requested(self, service):
        service.create("Shown", 3, 2025)
        hidden = service.create("Hidden", 3, 2025)
        service.update(hidden.id, is_active=False)

        assert [n.text for n in service.list_notices(3, 2025, active_only=True)] == ["Shown"]
        assert len(service.list_notices(3, 2025)) == 2

    def test_update_text(self, service):
        notice = service.create("Typo", 3, 2025)

        service.update(notice.id, text="Fixed")

        assert service.get(notice.id).text == "Fixed"

    def test_delete(self, service):
        notice_id = service.create("Gone soon", 3, 2025).id

        service.delete(notice_id)

        with pytest.raises(NotFoundError):
            service.get(notice_id)


class TestFooter:
    def test_default_footer(self, service):
        assert service.get_footer() == "Building Administration System"

    def test_set_footer_twice_keeps_one_setting(self, db_session, service):
        service.set_footer("Edificio Rambla")
        service.set_footer("Edificio Rambla - Administracion")

        assert service.get_footer() == "Edificio Rambla - Administracion"
