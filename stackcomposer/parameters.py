"""Deployment parameter resolution.

Parameters (for example the administrator e-mail address) may come from
several places. They are resolved once, before any declaration is built,
with a fixed precedence:

    override  ->  environment  ->  context  ->  default

An empty string counts as "not provided" at every level.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from stackcomposer.errors import MissingParameterError
from stackcomposer.observability.logging import get_logger

_logger = get_logger("parameters")


class ParameterSource(StrEnum):
    """Where a parameter value was found."""

    OVERRIDE = "override"
    ENVIRONMENT = "environment"
    CONTEXT = "context"
    DEFAULT = "default"


@dataclass(frozen=True)
class ParameterSpec:
    """Declaration of a deployment parameter and the places to look for it."""

    name: str
    env: str | None = None
    context: str | None = None
    default: str | None = None
    required: bool = True
    description: str = ""


@dataclass(frozen=True)
class ResolvedParameter:
    name: str
    value: str
    source: ParameterSource


def resolve_parameter(
    spec: ParameterSpec,
    overrides: Mapping[str, str],
    context: Mapping[str, str],
    environ: Mapping[str, str],
) -> ResolvedParameter | None:
    """Resolve a single parameter; None when optional and absent."""
    candidates: list[tuple[ParameterSource, str | None]] = [
        (ParameterSource.OVERRIDE, overrides.get(spec.name)),
        (ParameterSource.ENVIRONMENT, environ.get(spec.env) if spec.env else None),
        (ParameterSource.CONTEXT, context.get(spec.context) if spec.context else None),
        (ParameterSource.DEFAULT, spec.default),
    ]
    for source, value in candidates:
        if value:
            return ResolvedParameter(name=spec.name, value=str(value), source=source)

    if spec.required:
        checked = ["override"]
        if spec.env:
            checked.append(f"env {spec.env}")
        if spec.context:
            checked.append(f"context {spec.context}")
        raise MissingParameterError(spec.name, ", ".join(checked))
    return None


def resolve_parameters(
    specs: list[ParameterSpec],
    overrides: Mapping[str, str] | None = None,
    context: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, ResolvedParameter]:
    """Resolve every parameter in declaration order.

    ``environ`` defaults to the process environment.

    Raises:
        MissingParameterError: a required parameter has no value.
    """
    env = os.environ if environ is None else environ
    resolved: dict[str, ResolvedParameter] = {}
    for spec in specs:
        result = resolve_parameter(spec, overrides or {}, context or {}, env)
        if result is None:
            _logger.debug("parameter_absent", parameter=spec.name)
            continue
        # Values may be secrets; only the winning source is logged.
        _logger.info("parameter_resolved", parameter=spec.name, source=result.source.value)
        resolved[spec.name] = result
    return resolved
