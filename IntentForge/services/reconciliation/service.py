"""
Parameter Reconciliation Service.

Chooses the parameter set of one component's command from three evidence
sources, in decreasing confidence: the structural extractor, the semantic
inference agent, and the manifest's intent-filter facets. The first source
that yields parameters wins; every fallback is logged and recorded.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from ...core.exceptions import IntentForgeError, ParseFailureError
from ...core.logging import get_logger
from ...models.component import Component
from ...models.intent import (
    ExtractedParameter,
    InferenceResult,
    IntentFlag,
    IntentParameter,
    ParamType,
    shell_token,
)
from ..context_extraction import ContextExtractor
from ..structural_extraction import StructuralExtractor

logger = get_logger(__name__)


class ParameterSource(str, Enum):
    """Evidence source a resolution was taken from."""

    STRUCTURAL = "structural"
    INFERENCE = "inference"
    MANIFEST = "manifest"


# Confidence assigned to sources that do not report their own
STRUCTURAL_CONFIDENCE = 1.0
MANIFEST_CONFIDENCE = 0.5


class Resolution(BaseModel):
    """Outcome of reconciling one component's parameters."""

    model_config = ConfigDict(frozen=True)

    parameters: list[IntentParameter] = Field(default_factory=list)
    extra_args: list[str] = Field(
        default_factory=list,
        description="Pre-rendered typed argument tokens (structural source only)",
    )
    source: ParameterSource
    warnings: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source_file: Path | None = Field(default=None)


class IntentInference(Protocol):
    """Semantic inference collaborator as seen by the reconciler."""

    async def infer(self, context: str, component: Component) -> InferenceResult: ...


# Typed `am` extra options by extracted type
_EXTRA_OPTIONS: dict[ParamType, str] = {
    ParamType.STRING: "--es",
    ParamType.INT: "--ei",
    ParamType.FLOAT: "--ef",
    ParamType.DOUBLE: "--ef",
    ParamType.BOOLEAN: "--ez",
}


def flag_for_type(param_type: str) -> IntentFlag:
    """Flag an extracted parameter renders with: uri is data, anything else an extra."""
    return IntentFlag.DATA if ParamType.parse(param_type) is ParamType.URI else IntentFlag.EXTRA


def adapt_extracted(parameters: list[ExtractedParameter]) -> list[IntentParameter]:
    return [
        IntentParameter(
            name=p.key,
            declared_type=ParamType.parse(p.param_type),
            value=p.value,
            flag=flag_for_type(p.param_type),
        )
        for p in parameters
    ]


def to_adb_args(parameters: list[IntentParameter]) -> list[str]:
    """Render parameters as typed `am` argument tokens.

    Extras become `--es/--ei/--ef/--ez key value` (unknown types fall back to
    `--es`), data becomes `-d value`. Repeated (name, type) pairs are skipped.
    """
    args: list[str] = []
    seen: set[tuple[str, ParamType]] = set()
    for param in parameters:
        key = (param.name, param.declared_type)
        if key in seen:
            continue
        seen.add(key)

        if param.flag is IntentFlag.DATA:
            args.append(f"-d {shell_token(param.value)}")
            continue
        option = _EXTRA_OPTIONS.get(param.declared_type, "--es")
        value = param.value.strip('"') if param.declared_type is ParamType.STRING else param.value
        args.append(f"{option} {shell_token(param.name)} {shell_token(value)}")
    return args


def default_value(flag: IntentFlag, name: str, type_name: str = "") -> str:
    """Synthesize a placeholder value for a parameter that came without one."""
    if flag is IntentFlag.ACTION:
        return f"android.intent.action.{name}"
    if flag is IntentFlag.CATEGORY:
        return f"android.intent.category.{name}"
    if flag is IntentFlag.DATA:
        return f"content://{name}/example"
    if flag is IntentFlag.MIME_TYPE:
        return f"{name}/example"
    if flag is IntentFlag.FLAGS:
        return "1"

    kind = type_name.strip().lower()
    if kind == "string":
        return "example_string"
    if kind in ("integer", "int", "long"):
        return "1"
    if kind == "boolean":
        return "true"
    if kind in ("float", "double"):
        return "1.0"
    if kind == "uri":
        return f"content://{name}/example"
    return "example"


def parameters_from_inference(result: InferenceResult) -> tuple[list[IntentParameter], list[str]]:
    """Convert an inference answer, dropping parameters with an unknown flag."""
    parameters: list[IntentParameter] = []
    warnings: list[str] = []
    for raw in result.params:
        flag = IntentFlag.parse(raw.flag)
        if flag is None:
            warnings.append(f"Unknown flag '{raw.flag}' for parameter '{raw.name}', dropped")
            continue
        value = raw.value if raw.value is not None else default_value(flag, raw.name, raw.type)
        parameters.append(
            IntentParameter(
                name=raw.name,
                declared_type=ParamType.parse(raw.type),
                value=value,
                flag=flag,
            )
        )
    return parameters, warnings


def basic_parameters(component: Component) -> list[IntentParameter]:
    """Parameters derived from the component's first intent-filter facets."""
    parameters: list[IntentParameter] = []

    if component.actions:
        parameters.append(
            IntentParameter(
                name="action",
                declared_type=ParamType.STRING,
                value=component.actions[0],
                flag=IntentFlag.ACTION,
            )
        )
    if component.categories:
        parameters.append(
            IntentParameter(
                name="category",
                declared_type=ParamType.STRING,
                value=component.categories[0],
                flag=IntentFlag.CATEGORY,
            )
        )
    # A data URI needs both a scheme and a host
    if component.data_schemes and component.data_hosts:
        uri = f"{component.data_schemes[0]}://{component.data_hosts[0]}"
        if component.data_paths:
            uri += component.data_paths[0]
        parameters.append(
            IntentParameter(name="data", declared_type=ParamType.URI, value=uri, flag=IntentFlag.DATA)
        )
    if component.mime_types:
        parameters.append(
            IntentParameter(
                name="type",
                declared_type=ParamType.STRING,
                value=component.mime_types[0],
                flag=IntentFlag.MIME_TYPE,
            )
        )
    return parameters


_FLAG_LABELS = {
    IntentFlag.ACTION: "Action",
    IntentFlag.CATEGORY: "Category",
    IntentFlag.DATA: "Data",
    IntentFlag.MIME_TYPE: "Type",
    IntentFlag.EXTRA: "Extra",
    IntentFlag.FLAGS: "Flag",
}


def validate_parameters(parameters: list[IntentParameter]) -> list[str]:
    """Non-fatal checks on a parameter set; returns warnings, never raises."""
    if not parameters:
        return ["No parameters available for the command"]

    warnings = [
        f"{_FLAG_LABELS[p.flag]} parameter '{p.name}' has empty value"
        for p in parameters
        if not p.value
    ]
    if not any(p.flag is IntentFlag.ACTION for p in parameters):
        warnings.append("Command has no action (-a)")
    return warnings


class ParameterReconciler:
    """Resolves one component's parameters with a strict fallback order."""

    def __init__(
        self,
        inference_agent: IntentInference | None = None,
        context_extractor: ContextExtractor | None = None,
        structural_extractor: StructuralExtractor | None = None,
    ) -> None:
        self.inference_agent = inference_agent
        self.context_extractor = context_extractor or ContextExtractor()
        self.structural_extractor = structural_extractor or StructuralExtractor()

    async def resolve(self, component: Component, source_file: Path | None = None) -> Resolution:
        """Resolve parameters for `component`.

        Args:
            component: Component the command targets.
            source_file: Implementing source file, or None when it was not found.

        Returns:
            Resolution from the highest-confidence source that produced parameters.
        """
        warnings: list[str] = []

        if source_file is None:
            warnings.append("Source file not available, using manifest parameters")
            return self._from_manifest(component, warnings, source_file)

        structural = self._try_structural(source_file, warnings)
        if structural:
            parameters = adapt_extracted(structural)
            logger.info(
                "Resolved parameters from syntax tree",
                component=component.qualified_name,
                parameters=len(parameters),
            )
            return Resolution(
                parameters=parameters,
                extra_args=to_adb_args(parameters),
                source=ParameterSource.STRUCTURAL,
                warnings=warnings,
                confidence=STRUCTURAL_CONFIDENCE,
                source_file=source_file,
            )

        if self.inference_agent is not None:
            inferred = await self._try_inference(self.inference_agent, component, source_file, warnings)
            if inferred is not None:
                return inferred

        return self._from_manifest(component, warnings, source_file)

    def _try_structural(self, source_file: Path, warnings: list[str]) -> list[ExtractedParameter]:
        try:
            return self.structural_extractor.extract_file(source_file)
        except ParseFailureError as e:
            logger.warning("Structural extraction failed", source=str(source_file), error=e.message)
            warnings.append(f"Structural extraction failed: {e.message}")
            return []

    async def _try_inference(
        self,
        agent: IntentInference,
        component: Component,
        source_file: Path,
        warnings: list[str],
    ) -> Resolution | None:
        try:
            context = self.context_extractor.extract_file(source_file)
        except ParseFailureError as e:
            warnings.append(f"Context extraction failed: {e.message}")
            return None

        if not context:
            logger.info("Skipping inference, no intent context", component=component.qualified_name)
            warnings.append("No intent-related code found, inference skipped")
            return None

        try:
            result = await agent.infer(context, component)
        except IntentForgeError as e:
            logger.warning(
                "Inference failed, falling back to manifest",
                component=component.qualified_name,
                error=e.message,
            )
            warnings.append(f"Inference failed: {e.message}")
            return None

        parameters, dropped = parameters_from_inference(result)
        warnings.extend(dropped)
        if not parameters:
            warnings.append("Inference returned no usable parameters")
            return None

        warnings.extend(validate_parameters(parameters))
        if warnings:
            logger.warning(
                "Inferred parameters have warnings",
                component=component.qualified_name,
                warnings=warnings,
            )
        return Resolution(
            parameters=parameters,
            source=ParameterSource.INFERENCE,
            warnings=warnings,
            confidence=result.confidence,
            source_file=source_file,
        )

    def _from_manifest(
        self,
        component: Component,
        warnings: list[str],
        source_file: Path | None,
    ) -> Resolution:
        parameters = basic_parameters(component)
        warnings.extend(validate_parameters(parameters))
        logger.info(
            "Using manifest parameters",
            component=component.qualified_name,
            parameters=len(parameters),
            warnings=len(warnings),
        )
        return Resolution(
            parameters=parameters,
            source=ParameterSource.MANIFEST,
            warnings=warnings,
            confidence=MANIFEST_CONFIDENCE,
            source_file=source_file,
        )
