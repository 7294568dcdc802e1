"""
Test suite for access control module

Tests the role/operation/resource decision table, the Admin-only delete
path and fail-closed behaviour for values outside the enums.
"""

import itertools

import pytest

from loan_management.access import (
    ACCESS_TABLE, Operation, RequestContext, Resource, Role, allowed, can_delete
)


ALL_TRIPLES = list(itertools.product(Role, Operation, Resource))


class TestAdmin:
    """Admin overrides every rule"""

    @pytest.mark.parametrize("operation,resource", list(itertools.product(Operation, Resource)))
    def test_admin_always_allowed(self, operation, resource):
        assert allowed(Role.ADMIN, operation, resource) is True

    def test_admin_can_delete(self):
        assert can_delete(Role.ADMIN) is True
        assert can_delete("Admin") is True


class TestLoanOfficer:
    """Loan Officer permissions"""

    @pytest.mark.parametrize("resource", [Resource.CUSTOMER, Resource.LOAN])
    @pytest.mark.parametrize("operation", [Operation.CREATE, Operation.VIEW, Operation.EDIT])
    def test_manages_customers_and_loans(self, operation, resource):
        assert allowed(Role.LOAN_OFFICER, operation, resource)

    @pytest.mark.parametrize("resource", [Resource.REPAYMENT, Resource.PAYMENT, Resource.REPORT])
    def test_view_only_resources(self, resource):
        assert allowed(Role.LOAN_OFFICER, Operation.VIEW, resource)
        assert not allowed(Role.LOAN_OFFICER, Operation.CREATE, resource)
        assert not allowed(Role.LOAN_OFFICER, Operation.EDIT, resource)

    @pytest.mark.parametrize("operation", list(Operation))
    def test_no_user_access(self, operation):
        assert not allowed(Role.LOAN_OFFICER, operation, Resource.USER)


class TestCashier:
    """Cashier permissions"""

    @pytest.mark.parametrize("resource", [Resource.CUSTOMER, Resource.LOAN,
                                          Resource.REPAYMENT, Resource.REPORT])
    def test_view_only_resources(self, resource):
        assert allowed(Role.CASHIER, Operation.VIEW, resource)
        assert not allowed(Role.CASHIER, Operation.CREATE, resource)
        assert not allowed(Role.CASHIER, Operation.EDIT, resource)

    @pytest.mark.parametrize("operation", [Operation.CREATE, Operation.VIEW, Operation.EDIT])
    def test_handles_payments(self, operation):
        assert allowed(Role.CASHIER, operation, Resource.PAYMENT)

    @pytest.mark.parametrize("operation", list(Operation))
    def test_no_user_access(self, operation):
        assert not allowed(Role.CASHIER, operation, Resource.USER)


class TestDelete:
    """Delete is Admin-only on both paths"""

    @pytest.mark.parametrize("role", [Role.LOAN_OFFICER, Role.CASHIER])
    @pytest.mark.parametrize("resource", list(Resource))
    def test_table_never_grants_delete(self, role, resource):
        assert not allowed(role, Operation.DELETE, resource)

    @pytest.mark.parametrize("role", [Role.LOAN_OFFICER, Role.CASHIER, "Guest", None, 42])
    def test_can_delete_denies_non_admin(self, role):
        assert can_delete(role) is False


class TestUnknownValues:
    """Values outside the enums are denied and never raise"""

    @pytest.mark.parametrize("role,operation,resource", [
        ("Guest", "view", "Customer"),
        ("Admin", "approve", "Customer"),
        ("Admin", "view", "Account"),
        (None, None, None),
        ("", "", ""),
        (42, "view", "Loan"),
        (["Admin"], "view", "Loan"),
        ({"role": "Admin"}, "view", "Loan"),
        ("Cashier", 3.5, "Payment"),
        ("Cashier", "create", object()),
    ])
    def test_denied(self, role, operation, resource):
        assert allowed(role, operation, resource) is False

    def test_string_labels_resolve(self):
        assert allowed("Loan Officer", "create", "Customer")
        assert allowed("LoanOfficer", "edit", "Loan")
        assert allowed("cashier", "CREATE", "payment")
        assert not allowed("Cashier", "create", "Customer")


class TestTableCompleteness:
    """Every non-Admin role has an entry for every resource"""

    def test_table_covers_all_roles_and_resources(self):
        for role in Role:
            if role is Role.ADMIN:
                continue
            assert set(ACCESS_TABLE[role]) == set(Resource)

    def test_total_over_declared_domain(self):
        for role, operation, resource in ALL_TRIPLES:
            assert isinstance(allowed(role, operation, resource), bool)


class TestRequestContext:
    """Request context helpers"""

    def test_context_checks_access(self):
        context = RequestContext(user_id="u1", username="Cashier", name="Cashier", role=Role.CASHIER)
        assert context.can(Operation.CREATE, Resource.PAYMENT)
        assert not context.can(Operation.CREATE, Resource.LOAN)
        assert not context.is_admin

    def test_context_is_immutable(self):
        context = RequestContext(user_id="u1", username="Admin", name="Admin", role=Role.ADMIN)
        with pytest.raises(Exception):
            context.role = Role.CASHIER
