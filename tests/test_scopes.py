"""Tests for state query scopes."""

import pytest
from sqlmodel import select

from models import Account, Car, Status, Vehicle, account_machine
from sqlmodel_state_machines import Machine, StateMachineError, UnknownStateError


@pytest.fixture()
def fleet(session):
    vehicles = [
        Vehicle(name="herbie", state="parked", fuel=10),
        Vehicle(name="kitt", state="idling", fuel=3),
        Vehicle(name="general lee", state="first_gear", fuel=8),
        Vehicle(name="ghost", state=None),
    ]
    session.add_all(vehicles)
    session.commit()
    return vehicles


def names(session, statement):
    return sorted(vehicle.name for vehicle in session.exec(statement).all())


class TestWithStates:
    """with_state / with_states."""

    def test_single_state(self, session, fleet, vehicle_machine) -> None:
        assert names(session, vehicle_machine.with_state("parked")) == ["herbie"]

    def test_several_states(self, session, fleet, vehicle_machine) -> None:
        statement = vehicle_machine.with_states("parked", "idling")
        assert names(session, statement) == ["herbie", "kitt"]

    def test_list_argument(self, session, fleet, vehicle_machine) -> None:
        statement = vehicle_machine.with_states(["idling", "first_gear"])
        assert names(session, statement) == ["general lee", "kitt"]

    def test_empty_and_nil_are_transparent(self, session, fleet, vehicle_machine) -> None:
        assert len(names(session, vehicle_machine.with_states())) == 4
        assert len(names(session, vehicle_machine.with_state(None))) == 4

    def test_chains_onto_an_existing_statement(self, session, fleet, vehicle_machine) -> None:
        statement = vehicle_machine.with_states(
            "parked", "first_gear", statement=select(Vehicle).where(Vehicle.fuel > 9)
        )
        assert names(session, statement) == ["herbie"]

    def test_unknown_state_raises(self, vehicle_machine) -> None:
        with pytest.raises(UnknownStateError):
            vehicle_machine.with_state("flying")

    def test_nil_state_value(self, session, fleet) -> None:
        machine = Machine(Vehicle, "state")
        machine.state("unset", value=None)
        assert names(session, machine.with_state("unset")) == ["ghost"]


class TestWithoutStates:
    """without_state / without_states."""

    def test_single_state(self, session, fleet, vehicle_machine) -> None:
        assert names(session, vehicle_machine.without_state("parked")) == ["general lee", "kitt"]

    def test_several_states(self, session, fleet, vehicle_machine) -> None:
        assert names(session, vehicle_machine.without_states("parked", "idling")) == ["general lee"]

    def test_empty_is_transparent(self, session, fleet, vehicle_machine) -> None:
        assert len(names(session, vehicle_machine.without_states())) == 4

    def test_excluding_nil_value(self, session, fleet) -> None:
        machine = Machine(Vehicle, "state")
        machine.state("unset", value=None)
        assert names(session, machine.without_state("unset")) == ["general lee", "herbie", "kitt"]


class TestEnumScopes:
    """Scopes on an Enum column store enum members."""

    def test_with_state_on_enum_column(self, session) -> None:
        session.add_all([Account(status=Status.active), Account(status=Status.pending), Account()])
        session.commit()
        accounts = session.exec(account_machine.with_state("pending")).all()
        assert [account.status for account in accounts] == [Status.pending, Status.pending]


class TestUnmapped:
    """Scopes need a mapped class."""

    def test_plain_class_raises(self) -> None:
        machine = Machine(Car, "state")
        machine.state("parked")
        with pytest.raises(StateMachineError):
            machine.with_state("parked")
