"""Tests for persistence adapters, settings and machine options."""

import pytest
from pydantic import ValidationError

from models import Car, Vehicle
from sqlmodel_state_machines import InMemoryPersistence, Machine, SessionPersistence
from sqlmodel_state_machines.config import Settings, settings
from sqlmodel_state_machines.repositories.persistence import DEPTH_KEY
from sqlmodel_state_machines.schemas import MachineOptions


class TestInMemoryPersistence:
    """Snapshot/restore store for plain subjects."""

    def test_save_stores_public_attributes(self) -> None:
        memory = InMemoryPersistence()
        car = Car(state="parked")
        assert memory.save(car) is True
        assert memory.records == [car]
        assert memory.stored_attributes(car)["state"] == "parked"

    def test_save_runs_validations(self) -> None:
        memory = InMemoryPersistence()
        assert memory.save(Car(name="invalid")) is False
        assert memory.records == []

    def test_rollback_restores_store_and_attributes(self) -> None:
        memory = InMemoryPersistence()
        car = Car(state="parked")
        memory.save(car)

        boundary = memory.begin()
        car.state = "idling"
        memory.save(car)
        memory.save(Car(state="first_gear"))
        boundary.rollback()

        assert memory.records == [car]
        assert car.state == "parked"

    def test_commit_keeps_writes(self) -> None:
        memory = InMemoryPersistence()
        boundary = memory.begin()
        car = Car(state="idling")
        memory.save(car)
        boundary.commit()
        assert car in memory


class TestSessionPersistence:
    """SQLModel session adapter."""

    def test_save_commits_without_boundary(self, session) -> None:
        vehicle = Vehicle(name="herbie", state="parked")
        assert SessionPersistence(session).save(vehicle) is True
        assert session.get(Vehicle, vehicle.id) is vehicle

    def test_boundary_tracks_depth(self, session) -> None:
        persistence = SessionPersistence(session)
        outer = persistence.begin()
        inner = persistence.begin()
        assert session.info[DEPTH_KEY] == 2
        inner.commit()
        outer.rollback()
        assert session.info[DEPTH_KEY] == 0

    def test_save_inside_boundary_only_flushes(self, session) -> None:
        persistence = SessionPersistence(session)
        boundary = persistence.begin()
        vehicle = Vehicle(name="herbie", state="parked")
        persistence.save(vehicle)
        assert vehicle.id is not None
        boundary.rollback()
        assert session.get(Vehicle, vehicle.id) is None

    def test_owned_session_is_closed(self, session) -> None:
        persistence = SessionPersistence(session, owned=True)
        vehicle = Vehicle(name="herbie", state="parked")
        persistence.save(vehicle)
        persistence.close()
        assert vehicle not in session

    def test_machine_prefers_explicit_session(self, session) -> None:
        machine = Machine(Vehicle, "state", persistence=InMemoryPersistence())
        persistence = machine.persistence_for(Vehicle(), session)
        assert isinstance(persistence, SessionPersistence)
        assert persistence.session is session
        assert not persistence.owned

    def test_machine_uses_configured_adapter_for_detached_subjects(self) -> None:
        memory = InMemoryPersistence()
        machine = Machine(Vehicle, "state", persistence=memory)
        assert machine.persistence_for(Vehicle()) is memory

    def test_machine_opens_owned_session_for_detached_models(self) -> None:
        persistence = Machine(Vehicle, "state").persistence_for(Vehicle())
        assert isinstance(persistence, SessionPersistence)
        assert persistence.owned
        assert persistence.session.expire_on_commit is False
        persistence.close()

    def test_plain_machine_without_adapter(self) -> None:
        assert Machine(Car, "state").persistence_for(Car()) is None


class TestConfiguration:
    """Settings and per-machine options."""

    def test_settings_from_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("STATE_MACHINES_USE_TRANSACTIONS", "false")
        monkeypatch.setenv("STATE_MACHINES_HALTED_MESSAGE", "Stopped")
        configured = Settings()
        assert configured.USE_TRANSACTIONS is False
        assert configured.HALTED_MESSAGE == "Stopped"

    def test_options_default_from_settings(self, monkeypatch) -> None:
        monkeypatch.setattr(settings, "USE_TRANSACTIONS", False)
        assert MachineOptions().use_transactions is False

    def test_halted_message_from_settings(self, monkeypatch, car_machine) -> None:
        monkeypatch.setattr(settings, "HALTED_MESSAGE", "Stopped")
        assert car_machine.errors_for(Car()) == "Stopped"

    def test_unknown_option_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Machine(Car, "state", intial="parked")

    def test_defaults(self) -> None:
        options = MachineOptions()
        assert options.action == "save"
        assert options.use_transactions is True
        assert options.enum_prefix is True
