from __future__ import annotations

import pytest
from sqlmodel import Session

import models  # noqa: F401  (registers the test tables)
from models import Car, Vehicle
from sqlmodel_state_machines import InMemoryPersistence, Machine
from sqlmodel_state_machines.infrastructure.database.connection import build_engine, init_db


@pytest.fixture()
def engine():
    # Fresh in-memory database per test (StaticPool keeps it on one connection)
    engine = build_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def memory() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture()
def car_machine(memory) -> Machine:
    """parked -> idling -> first_gear, saved through an in-memory store."""
    machine = Machine(Car, "state", initial="parked", persistence=memory)
    machine.state("parked", "idling", "first_gear")
    machine.event("ignite").transition(parked="idling")
    machine.event("shift_up").transition(idling="first_gear")
    machine.event("park").transition(sources=["idling", "first_gear"], to="parked")
    return machine


@pytest.fixture()
def vehicle_machine() -> Machine:
    machine = Machine(Vehicle, "state")
    machine.state("parked", "idling", "first_gear")
    machine.event("ignite").transition(parked="idling")
    machine.event("shift_up").transition(idling="first_gear")
    machine.event("park").transition(sources=["idling", "first_gear"], to="parked")
    return machine


@pytest.fixture()
def parked_vehicle(session) -> Vehicle:
    vehicle = Vehicle(name="herbie", state="parked")
    session.add(vehicle)
    session.commit()
    session.refresh(vehicle)
    return vehicle
