"""Boundary functions for a presentation layer.

A host hands the simulator JSON-like documents and gets back frozen
result models. Documents are validated up front: a malformed creature,
action or dice formula raises a typed ``ValidationError`` before any
simulation starts.

Example:
    >>> from encounter_sim.service import run_simulation, validate_simulation_request
    >>> request = validate_simulation_request(document)
    >>> outcome = run_simulation(request, progress_callback=print)
    >>> outcome.result.analysis.win_rate
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from encounter_sim.balancer.adjuster import AutoBalancer
from encounter_sim.core.config import Settings, get_settings
from encounter_sim.core.exceptions import DiceRollError, ValidationError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.results import AutoAdjustResult, SimulationOutcome
from encounter_sim.models.timeline import AutoAdjustRequest, SimulationRequest
from encounter_sim.orchestration.cache import RunCache
from encounter_sim.orchestration.two_pass import (
    CancellationToken,
    ProgressCallback,
    TwoPassOrchestrator,
)


logger = get_logger(__name__)

FORMULA_FIELDS = frozenset(
    {"dpr", "to_hit", "amount", "initiative_bonus", "ac", "damage", "damage_reduction", "save"}
)
"""Field names that hold dice formulas anywhere in a request."""


# =============================================================================
# Validation
# =============================================================================


def _iter_formulas(value: Any, path: str) -> Iterator[tuple[str, str]]:
    """Walk a model tree and yield (location, formula) for every dice string."""
    if isinstance(value, BaseModel):
        for name in type(value).model_fields:
            child = getattr(value, name)
            location = f"{path}.{name}" if path else name
            if name in FORMULA_FIELDS and isinstance(child, str):
                yield location, child
            else:
                yield from _iter_formulas(child, location)
    elif isinstance(value, list | tuple):
        for index, item in enumerate(value):
            yield from _iter_formulas(item, f"{path}[{index}]")
    elif isinstance(value, dict):
        for key, item in value.items():
            yield from _iter_formulas(item, f"{path}.{key}")


def check_formulas(model: BaseModel) -> None:
    """Check that every dice formula in a request can be rolled and averaged.

    Args:
        model: A validated request model.

    Raises:
        ValidationError: On the first formula the dice roller rejects.
    """
    dice = DiceRoller()
    for location, formula in _iter_formulas(model, ""):
        try:
            dice.validate(formula)
        except DiceRollError as exc:
            raise ValidationError(
                f"Invalid dice formula at {location}",
                field_name=location,
                invalid_value=formula,
                details={"reason": exc.message},
            ) from exc


def _validate(model_type: type[BaseModel], document: Mapping[str, Any] | BaseModel) -> Any:
    if isinstance(document, model_type):
        model = document
    else:
        if isinstance(document, BaseModel):
            document = document.model_dump()
        try:
            model = model_type.model_validate(document)
        except PydanticValidationError as exc:
            errors = exc.errors(include_url=False)
            first = errors[0] if errors else {}
            location = ".".join(str(part) for part in first.get("loc", ()))
            raise ValidationError(
                f"Invalid {model_type.__name__}: {first.get('msg', 'validation failed')}",
                field_name=location or None,
                details={"error_count": len(errors), "errors": str(exc)},
            ) from exc
    check_formulas(model)
    return model


def validate_simulation_request(document: Mapping[str, Any] | SimulationRequest) -> SimulationRequest:
    """Validate a simulation request document.

    Args:
        document: JSON-like mapping or an already built request.

    Returns:
        The frozen request.

    Raises:
        ValidationError: If the document or any dice formula is malformed.
    """
    return _validate(SimulationRequest, document)


def validate_auto_adjust_request(document: Mapping[str, Any] | AutoAdjustRequest) -> AutoAdjustRequest:
    """Validate an auto-adjust request document."""
    return _validate(AutoAdjustRequest, document)


# =============================================================================
# Entry points
# =============================================================================


def run_simulation(
    request: Mapping[str, Any] | SimulationRequest,
    *,
    settings: Settings | None = None,
    template_cache: TemplateCache | None = None,
    run_cache: RunCache | None = None,
    cancel_token: CancellationToken | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SimulationOutcome:
    """Validate a request and run it as a two-pass batch.

    Args:
        request: Request document or model.
        settings: Simulator settings; defaults to the global settings.
        template_cache: Template cache to share across batches.
        run_cache: Survey cache to share across batches.
        cancel_token: Cooperative cancellation signal.
        progress_callback: Receives a progress update after every chunk.

    Returns:
        The completed or cancelled outcome.

    Raises:
        ValidationError: If the request is malformed.
    """
    validated = validate_simulation_request(request)
    orchestrator = TwoPassOrchestrator(
        validated,
        settings=settings or get_settings(),
        template_cache=template_cache,
        run_cache=run_cache,
        cancel_token=cancel_token,
        progress_callback=progress_callback,
    )
    return orchestrator.run()


def auto_adjust(
    request: Mapping[str, Any] | AutoAdjustRequest,
    *,
    settings: Settings | None = None,
) -> AutoAdjustResult:
    """Validate an auto-adjust request and propose stat deltas.

    Raises:
        ValidationError: If the request is malformed.
    """
    validated = validate_auto_adjust_request(request)
    logger.info(
        "Auto-adjust requested",
        encounter=validated.encounter.name,
        target=validated.target_tier.label,
    )
    return AutoBalancer(settings or get_settings()).auto_adjust(validated)


__all__ = [
    "FORMULA_FIELDS",
    "check_formulas",
    "validate_simulation_request",
    "validate_auto_adjust_request",
    "run_simulation",
    "auto_adjust",
]
