"""Custom exception hierarchy for the encounter simulator.

All exceptions inherit from EncounterSimError so a caller can catch
everything the simulator raises at one boundary while still telling
request-level failures (validation, configuration) apart from per-run
failures (invariant violations) and batch-level conditions (cancellation).

Example:
    >>> from encounter_sim.core.exceptions import ValidationError
    >>> raise ValidationError("Creature has no hit points", field_name="hp", invalid_value=0)
"""

from __future__ import annotations

from typing import Any


class EncounterSimError(Exception):
    """Base exception for all encounter simulator errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    @property
    def kind(self) -> str:
        """Stable error kind used in structured results."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error as a kind plus context mapping.

        Returns:
            Dictionary with ``kind``, ``message`` and ``details`` keys.
        """
        return {"kind": self.kind, "message": self.message, "details": dict(self.details)}

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception.

        Returns:
            String representation suitable for debugging.
        """
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(EncounterSimError):
    """Raised when simulator configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error with config key context.

        Args:
            message: Human-readable error description.
            config_key: The configuration key that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(EncounterSimError):
    """Raised when a request document is malformed.

    Request validation happens before any simulation runs, so a request
    that raises this error is never partially simulated.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize validation error with field context.

        Args:
            message: Human-readable error description.
            field_name: Name (or dotted location) of the field that failed validation.
            invalid_value: The value that failed validation.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Game Engine Domain Exceptions
# =============================================================================


class GameEngineError(EncounterSimError):
    """Base exception for errors raised while resolving combat."""


class DiceRollError(GameEngineError):
    """Raised when a dice formula cannot be parsed or rolled."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize dice roll error with expression context.

        Args:
            message: Human-readable error description.
            expression: The dice expression that caused the error.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if expression:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


class CombatError(GameEngineError):
    """Raised when combat resolution encounters an error."""

    def __init__(
        self,
        message: str,
        *,
        combatant_id: str | None = None,
        round_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize combat error with combat context.

        Args:
            message: Human-readable error description.
            combatant_id: Identifier of the combatant involved.
            round_number: Current combat round when error occurred.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if combatant_id:
            combined_details["combatant_id"] = combatant_id
        if round_number is not None:
            combined_details["round_number"] = round_number
        super().__init__(message, details=combined_details)


class ResourceError(CombatError):
    """Raised when a combatant cannot pay the cost of an action.

    The engine turns this into an ActionSkipped event; it never ends a run.
    """

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        combatant_id: str | None = None,
        round_number: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize resource error with the missing resource key.

        Args:
            message: Human-readable error description.
            resource: Ledger key of the insufficient resource.
            combatant_id: Identifier of the paying combatant.
            round_number: Current combat round.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if resource:
            combined_details["resource"] = resource
        super().__init__(
            message,
            combatant_id=combatant_id,
            round_number=round_number,
            details=combined_details,
        )


class EncounterTimeout(CombatError):
    """Raised inside the turn loop when the round or turn cap is reached.

    The Execution Engine catches it and records a Timeout outcome.
    """


class InternalInvariantError(GameEngineError):
    """Raised when the engine reaches an inconsistent state.

    Fatal to the run in progress only; the orchestrator marks that seed
    as failed and keeps going.
    """

    def __init__(
        self,
        message: str,
        *,
        current_state: str | None = None,
        expected_states: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invariant error with state context.

        Args:
            message: Human-readable error description.
            current_state: The offending state or identifier.
            expected_states: States or identifiers that were expected.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if current_state:
            combined_details["current_state"] = current_state
        if expected_states:
            combined_details["expected_states"] = expected_states
        super().__init__(message, details=combined_details)


class TurnManagementError(GameEngineError):
    """Raised when initiative or turn progression is misused."""


# =============================================================================
# Orchestration Exceptions
# =============================================================================


class OrchestrationError(EncounterSimError):
    """Base exception for batch orchestration errors."""


class CancelledError(OrchestrationError):
    """Raised when a batch is cancelled between chunks."""

    def __init__(
        self,
        message: str = "Simulation batch cancelled",
        *,
        completed: int | None = None,
        total: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize cancellation error with progress context.

        Args:
            message: Human-readable error description.
            completed: Runs finished before cancellation was observed.
            total: Runs requested for the batch.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if completed is not None:
            combined_details["completed"] = completed
        if total is not None:
            combined_details["total"] = total
        super().__init__(message, details=combined_details)


__all__ = [
    "EncounterSimError",
    # Configuration & validation
    "ConfigurationError",
    "ValidationError",
    # Engine
    "GameEngineError",
    "DiceRollError",
    "CombatError",
    "ResourceError",
    "EncounterTimeout",
    "InternalInvariantError",
    "TurnManagementError",
    # Orchestration
    "OrchestrationError",
    "CancelledError",
]
