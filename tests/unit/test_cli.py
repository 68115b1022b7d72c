"""Tests for the charge generation command."""

from datetime import date
from unittest.mock import patch

import pytest

from condo_ledger.cli.generate_charges import main, parse_args
from condo_ledger.models import Charge


@pytest.fixture
def cli_session(db_session):
    """Route the command to the test session and keep root logging untouched."""
    with patch("condo_ledger.services.SessionLocal", return_value=db_session), patch(
        "condo_ledger.cli.generate_charges.setup_server_logging"
    ):
        yield db_session


class TestParseArgs:
    def test_defaults_to_current_month(self):
        args = parse_args([])
        today = date.today()
        assert (args.month, args.year) == (today.month, today.year)

    def test_explicit_period(self):
        args = parse_args(["--month", "3", "--year", "2025"])
        assert (args.month, args.year) == (3, 2025)

    def test_month_out_of_range(self):
        with pytest.raises(SystemExit):
            parse_args(["--month", "13"])


class TestMain:
    def test_generates_charges(self, cli_session, make_apartment):
        make_apartment("101", "100.00", "20.00")

        assert main(["--month", "1", "--year", "2025"]) == 0
        assert cli_session.query(Charge).count() == 2

    def test_nothing_to_do_is_success(self, cli_session):
        assert main(["--month", "1", "--year", "2025"]) == 0
        assert cli_session.query(Charge).count() == 0

    def test_failure_returns_one(self, cli_session, make_apartment):
        make_apartment()
        with patch(
            "condo_ledger.services.period_service.ChargeGenerationService.generate_monthly_charges",
            side_effect=RuntimeError("disk full"),
        ):
            assert main(["--month", "1", "--year", "2025"]) == 1

    def test_interrupted(self, cli_session):
        with patch(
            "condo_ledger.services.period_service.ChargeGenerationService.generate_monthly_charges",
            side_effect=KeyboardInterrupt,
        ):
            assert main(["--month", "1", "--year", "2025"]) == 1
