"""Tests for initial states and column-default precedence."""

import logging

from models import (
    Account,
    Car,
    DefaultedVehicle,
    Order,
    Shipment,
    Status,
    Vehicle,
    account_machine,
    order_machine,
)
from sqlmodel_state_machines import Machine, machines_for, state_machine

CONFLICT_WARNING = (
    "Both DefaultedVehicle and its 'state' machine have defined a different default for \"state\". "
    "Use only one or the other for defining defaults to avoid unexpected behaviors."
)


class TestStaticInitial:
    """A named initial state is written when the model is constructed."""

    def test_new_model_gets_initial_state(self) -> None:
        assert Order().status == "pending"

    def test_explicit_value_is_kept(self) -> None:
        assert Order(status="paid").status == "paid"

    def test_initial_state_is_flagged(self) -> None:
        assert order_machine.initial_state.name == "pending"
        assert [state.name for state in order_machine.states] == ["pending", "paid", "shipped"]

    def test_loaded_rows_keep_their_value(self, session) -> None:
        order = Order(status="shipped")
        session.add(order)
        session.commit()
        order_id = order.id
        session.expunge_all()
        assert session.get(Order, order_id).status == "shipped"

    def test_persisted_and_transitioned(self, session) -> None:
        order = Order()
        session.add(order)
        session.commit()
        assert order_machine.fire(order, "pay") is True
        session.refresh(order)
        assert order.status == "paid"

    def test_plain_subjects_use_initialize_state(self, car_machine) -> None:
        car = car_machine.initialize_state(Car())
        assert car.state == "parked"
        car.state = "idling"
        assert car_machine.initialize_state(car).state == "idling"
        assert car_machine.initialize_state(car, force=True).state == "parked"

    def test_machine_without_initial_leaves_value_alone(self) -> None:
        Machine(Vehicle, "state").state("parked")
        assert Vehicle().state is None


class TestDynamicInitial:
    """A callable initial state sees the constructor arguments."""

    def test_uses_constructor_arguments(self) -> None:
        assert Shipment(priority=True).state == "express"

    def test_falls_back_to_field_defaults(self) -> None:
        assert Shipment().state == "standard"

    def test_plain_subject(self) -> None:
        machine = Machine(Car, "state", initial=lambda car: "idling" if car.fuel else "parked")
        machine.state("parked", "idling")
        assert machine.initialize_state(Car(fuel=0)).state == "parked"
        assert machine.initialize_state(Car(fuel=5)).state == "idling"


class TestColumnDefault:
    """Precedence between the machine's initial state and the column default."""

    def test_conflicting_default_warns(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            machine = Machine(DefaultedVehicle, "state", initial="parked")
        assert CONFLICT_WARNING in caplog.messages
        assert machine.initial_state.name == "parked"

    def test_matching_default_does_not_warn(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            Machine(DefaultedVehicle, "state", initial="idling")
        assert not any("different default" in message for message in caplog.messages)

    def test_default_becomes_initial_state(self) -> None:
        machine = Machine(DefaultedVehicle, "state")
        assert machine.initial_state.name == "idling"

    def test_enum_default_becomes_initial_state(self) -> None:
        assert account_machine.initial_state.name == "pending"
        assert account_machine.initial_state.value is Status.pending
        assert Account().status is Status.pending


class TestMachineRegistry:
    """state_machine() / machines_for()."""

    def test_state_machine_returns_existing_machine(self) -> None:
        assert state_machine(Order, "status") is order_machine

    def test_machines_for_includes_inherited(self) -> None:
        class Base:
            pass

        class Child(Base):
            pass

        base_machine = state_machine(Base, "state")
        child_machine = state_machine(Child, "alarm_state")
        found = machines_for(Child)
        assert found == {"state": base_machine, "alarm_state": child_machine}

    def test_aliased_machine_names(self) -> None:
        class Light:
            pass

        primary = state_machine(Light, "state")
        alias = state_machine(Light, "state", name="status")
        assert primary is not alias
        assert alias.attribute == "state"
        assert set(machines_for(Light)) == {"state", "status"}

    def test_static_initial_replaces_a_callable_one(self) -> None:
        class Truck:
            def __init__(self):
                self.state = None

        machine = state_machine(Truck, initial=lambda truck: "parked")
        machine.state("parked", "idling")
        assert machine.initialize_state(Truck()).state == "parked"

        assert state_machine(Truck, initial="idling") is machine
        assert machine.initial_state.name == "idling"
        assert machine.initialize_state(Truck()).state == "idling"
