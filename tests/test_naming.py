"""Tests for helper naming and enum integration."""

import pytest

from models import Account, Car, Status, account_machine
from sqlmodel_state_machines import Machine, StateMachineError
from sqlmodel_state_machines.naming import MethodKind, NamingTable


class TestNamingTable:
    """Identifiers for plain machines."""

    def test_default_patterns(self) -> None:
        table = NamingTable("state")
        names = table.build(["parked", "first_gear"])
        assert names[("parked", MethodKind.PREDICATE)] == "is_parked"
        assert names[("parked", MethodKind.BANG)] == "set_parked"
        assert names[("first_gear", MethodKind.SCOPE)] == "first_gear"
        assert table.generated == []

    def test_nil_state_has_no_helpers(self) -> None:
        table = NamingTable("state")
        assert table.build([None]) == {}

    def test_namespace(self) -> None:
        table = NamingTable("alarm_state", namespace="alarm")
        names = table.build(["active"])
        assert names[("active", MethodKind.PREDICATE)] == "is_alarm_active"
        assert names[("active", MethodKind.SCOPE)] == "alarm_active"

    def test_lookup_and_negated_scope(self) -> None:
        table = NamingTable("state")
        table.build(["parked"])
        assert table.lookup("is_parked") == ("parked", MethodKind.PREDICATE, False)
        assert table.lookup("not_parked") == ("parked", MethodKind.SCOPE, True)
        assert table.lookup("is_flying") is None


class TestEnumIntegration:
    """Enum columns get attribute-prefixed helper names."""

    def test_enum_is_detected(self) -> None:
        assert account_machine.enum_integration.enum_class is Status
        assert account_machine.enum_integration.mapping == {
            "pending": "pending",
            "active": "active",
            "archived": "archived",
        }

    def test_prefixed_names(self) -> None:
        names = account_machine.helper_names
        assert names[("pending", MethodKind.PREDICATE)] == "is_status_pending"
        assert names[("active", MethodKind.BANG)] == "set_status_active"
        assert names[("archived", MethodKind.SCOPE)] == "status_archived"
        assert "is_status_pending" in account_machine.naming.generated

    def test_original_methods_are_listed(self) -> None:
        assert "is_pending" in account_machine.enum_integration.original_methods
        assert "is_active" not in account_machine.enum_integration.original_methods

    def test_states_store_enum_members(self) -> None:
        assert account_machine.registry.state_by_name("active").value is Status.active

    def test_predicate_helper(self) -> None:
        account = Account()
        is_status_pending = account_machine.helper("is_status_pending")
        assert is_status_pending(account) is True
        assert account_machine.helper("is_status_active")(account) is False

    def test_scope_helpers(self, session) -> None:
        session.add_all([Account(), Account(status=Status.active)])
        session.commit()
        active = session.exec(account_machine.helper("status_active")()).all()
        not_active = session.exec(account_machine.helper("not_status_active")()).all()
        assert [account.status for account in active] == [Status.active]
        assert [account.status for account in not_active] == [Status.pending]

    def test_bang_helper_is_a_placeholder(self) -> None:
        with pytest.raises(StateMachineError, match="conflict-resolution placeholder"):
            account_machine.helper("set_status_active")(Account())

    def test_transitions_write_enum_members(self, session) -> None:
        account = Account()
        session.add(account)
        session.commit()
        assert account_machine.fire(account, "activate") is True
        session.commit()
        session.refresh(account)
        assert account.status is Status.active


class TestHelperResolution:
    """Machine.helper() on plain machines and options."""

    def test_plain_machine_helpers(self, car_machine) -> None:
        car = Car(state="parked")
        assert car_machine.helper("is_parked")(car) is True
        assert car_machine.helper("is_idling")(car) is False

    def test_unknown_helper(self, car_machine) -> None:
        with pytest.raises(AttributeError):
            car_machine.helper("is_flying")

    def test_custom_prefix_and_suffix(self) -> None:
        machine = Machine(Account, "status", enum_prefix="account", enum_suffix=True)
        machine.state("pending")
        assert machine.helper_names[("pending", MethodKind.PREDICATE)] == "is_account_pending_status"

    def test_scopes_can_be_disabled(self) -> None:
        machine = Machine(Account, "status", enum_scopes=False)
        machine.state("pending")
        with pytest.raises(AttributeError):
            machine.helper("status_pending")
        assert machine.helper("is_status_pending")(Account(status=Status.pending)) is True
