"""Chart of accounts maintenance through AccountService."""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import AccountType, LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    AccountHierarchyError,
    AccountNotFoundError,
    AccountRoleNotBoundError,
    DuplicateAccountCodeError,
)
from ledger_kernel.services import RoleResolver


class TestCreateAccount:
    def test_create_and_post(
        self, account_service, journal_service, ledger_selector, chart, entry_date, test_actor
    ):
        sales = account_service.create_account("4001", "Sales", AccountType.REVENUE)

        journal_service.post_journal(
            entry_date,
            JournalReference(ReferenceKind.MANUAL, "SALE-1"),
            "First sale",
            test_actor,
            [LineSpec.dr(chart["1101"], Decimal("100000")), LineSpec.cr(sales.id, Decimal("100000"))],
        )

        assert sales.normal_balance == "credit"
        assert ledger_selector.account_balance(sales.id) == Decimal("100000")
        assert ledger_selector.account_balance(chart["1101"]) == Decimal("100000")

    def test_duplicate_code(self, account_service, chart):
        with pytest.raises(DuplicateAccountCodeError) as exc_info:
            account_service.create_account("1101", "Petty cash", "asset")
        assert exc_info.value.account_code == "1101"

    def test_unknown_type(self, account_service):
        with pytest.raises(ValueError):
            account_service.create_account("9999", "Mystery", "contra")

    def test_unknown_parent(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.create_account("1199", "Till", "asset", parent_id=123456)

    def test_child_account(self, account_service, chart):
        till = account_service.create_account("1109", "Till drawer", "asset", parent_id=chart["1101"])
        assert till.parent_id == chart["1101"]
        assert account_service.get_by_code("1109").id == till.id


class TestHierarchy:
    def test_self_parent_rejected(self, account_service, chart):
        with pytest.raises(AccountHierarchyError):
            account_service.update_account(chart["1101"], parent_id=chart["1101"])

    def test_cycle_rejected(self, account_service, chart):
        parent = account_service.create_account("1190", "Cash group", "asset")
        child = account_service.create_account("1191", "Cash drawer", "asset", parent_id=parent.id)

        with pytest.raises(AccountHierarchyError):
            account_service.update_account(parent.id, parent_id=child.id)

    def test_detach_parent(self, account_service, chart):
        child = account_service.create_account("1192", "Float", "asset", parent_id=chart["1101"])
        assert account_service.update_account(child.id, parent_id=None).parent_id is None


class TestActivation:
    def test_deactivate_and_reactivate(self, account_service, chart):
        assert not account_service.deactivate(chart["5300"]).is_active
        codes = {a.code for a in account_service.list_accounts(include_inactive=False)}
        assert "5300" not in codes

        assert account_service.reactivate(chart["5300"]).is_active

    def test_unknown_account(self, account_service):
        with pytest.raises(AccountNotFoundError):
            account_service.deactivate(987654)


class TestSeedChart:
    def test_seed_creates_configured_chart(self, account_service, ledger_config, chart):
        assert set(chart) == {d.code for d in ledger_config.chart_of_accounts}
        assert account_service.get_by_code("2202").account_type == AccountType.ASSET

    def test_seed_is_idempotent(self, account_service, ledger_config, chart):
        again = account_service.seed_chart(ledger_config.chart_of_accounts)
        assert again == chart
        assert len(account_service.list_accounts()) == len(chart)


class TestRoleResolver:
    def test_roles_resolve_to_configured_accounts(self, role_resolver, chart):
        assert role_resolver.resolve(AccountRole.INVENTORY) == chart["1300"]
        assert role_resolver.resolve("accounts_payable") == chart["2100"]
        assert role_resolver.code_for(AccountRole.DRIVER_RECEIVABLE) == "1104"

    def test_unbound_role(self, session, chart):
        resolver = RoleResolver(session, {"cash": "1101"})
        with pytest.raises(AccountRoleNotBoundError):
            resolver.resolve(AccountRole.BANK)

    def test_inactive_bound_account(self, session, account_service, chart):
        account_service.deactivate(chart["1102"])
        resolver = RoleResolver(session, {"bank": "1102"})
        with pytest.raises(AccountRoleNotBoundError) as exc_info:
            resolver.resolve(AccountRole.BANK)
        assert exc_info.value.account_code == "1102"

    def test_explicit_code(self, role_resolver, chart):
        assert role_resolver.resolve_code("1102") == chart["1102"]
        with pytest.raises(AccountRoleNotBoundError):
            role_resolver.resolve_code("0000")
