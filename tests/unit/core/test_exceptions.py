"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from encounter_sim.core.exceptions import (
    CancelledError,
    CombatError,
    ConfigurationError,
    DiceRollError,
    EncounterSimError,
    EncounterTimeout,
    GameEngineError,
    InternalInvariantError,
    OrchestrationError,
    ResourceError,
    TurnManagementError,
    ValidationError,
)


class TestEncounterSimError:
    """Tests for the base exception."""

    def test_message_only(self) -> None:
        """Test an error without details."""
        error = EncounterSimError("Something broke")

        assert str(error) == "Something broke"
        assert error.details == {}

    def test_message_with_details(self) -> None:
        """Test that details are appended to the message."""
        error = EncounterSimError("Something broke", details={"seed": 3})

        assert "seed=3" in str(error)
        assert error.message == "Something broke"

    def test_to_dict(self) -> None:
        """Test serialization as kind plus context."""
        error = DiceRollError("Bad formula", expression="2d")

        assert error.to_dict() == {
            "kind": "DiceRollError",
            "message": "Bad formula",
            "details": {"expression": "2d"},
        }

    def test_repr(self) -> None:
        """Test debugging representation."""
        error = EncounterSimError("oops", details={"a": 1})

        assert repr(error) == "EncounterSimError(message='oops', details={'a': 1})"


class TestDomainErrors:
    """Tests for context carried by domain errors."""

    def test_configuration_error_key(self) -> None:
        """Test config key context."""
        error = ConfigurationError("bad", config_key="chunk_size")

        assert error.details["config_key"] == "chunk_size"

    def test_validation_error_fields(self) -> None:
        """Test field context."""
        error = ValidationError("bad", field_name="party.0.hp", invalid_value=-1)

        assert error.details == {"field_name": "party.0.hp", "invalid_value": -1}

    def test_resource_error_context(self) -> None:
        """Test resource and combat context."""
        error = ResourceError(
            "Cannot pay",
            resource="SpellSlot(3)",
            combatant_id="wizard-0",
            round_number=2,
        )

        assert error.details == {
            "resource": "SpellSlot(3)",
            "combatant_id": "wizard-0",
            "round_number": 2,
        }

    def test_invariant_error_context(self) -> None:
        """Test state context."""
        error = InternalInvariantError(
            "Unknown combatant",
            current_state="ghost-0",
            expected_states=["fighter-0"],
        )

        assert error.details["current_state"] == "ghost-0"
        assert error.details["expected_states"] == ["fighter-0"]

    def test_cancelled_error_defaults(self) -> None:
        """Test cancellation progress context."""
        error = CancelledError(completed=150, total=1000)

        assert error.message == "Simulation batch cancelled"
        assert error.to_dict()["kind"] == "CancelledError"
        assert error.details == {"completed": 150, "total": 1000}


class TestHierarchy:
    """Tests for exception inheritance."""

    @pytest.mark.parametrize(
        ("error_type", "parent"),
        [
            (ConfigurationError, EncounterSimError),
            (ValidationError, EncounterSimError),
            (GameEngineError, EncounterSimError),
            (DiceRollError, GameEngineError),
            (CombatError, GameEngineError),
            (ResourceError, CombatError),
            (EncounterTimeout, CombatError),
            (InternalInvariantError, GameEngineError),
            (TurnManagementError, GameEngineError),
            (OrchestrationError, EncounterSimError),
            (CancelledError, OrchestrationError),
        ],
    )
    def test_inheritance(self, error_type: type, parent: type) -> None:
        """Test each error derives from its parent."""
        assert issubclass(error_type, parent)

    def test_catch_all(self) -> None:
        """Test that the base class catches domain errors."""
        with pytest.raises(EncounterSimError):
            raise EncounterTimeout("Round cap reached", round_number=50)
