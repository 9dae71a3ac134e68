"""
Intent parameter models.

IntentParameter is the unit the command synthesizer renders. Candidates reach it
from three evidence sources with different shapes: ExtractedParameter from the
syntax-tree extractor, InferredParameter from the LLM, and manifest facets.
"""

from __future__ import annotations

import shlex
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class IntentFlag(str, Enum):
    """`am` option categories an IntentParameter can render as."""

    ACTION = "-a"
    CATEGORY = "-c"
    DATA = "-d"
    MIME_TYPE = "-t"
    EXTRA = "-e"
    FLAGS = "-f"

    @classmethod
    def parse(cls, raw: str) -> IntentFlag | None:
        """Return the flag for `raw`, or None when it is outside the closed set."""
        try:
            return cls(raw.strip())
        except ValueError:
            return None


class ParamType(str, Enum):
    """Declared type of an intent parameter."""

    STRING = "String"
    INT = "Int"
    FLOAT = "Float"
    DOUBLE = "Double"
    BOOLEAN = "Boolean"
    URI = "Uri"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw: str | None) -> ParamType:
        """Map a free-form type name (Java type, LLM answer, extractor tag)."""
        if not raw:
            return cls.UNKNOWN
        return _TYPE_ALIASES.get(raw.strip().lower(), cls.UNKNOWN)


_TYPE_ALIASES: dict[str, ParamType] = {
    "string": ParamType.STRING,
    "charsequence": ParamType.STRING,
    "int": ParamType.INT,
    "integer": ParamType.INT,
    "long": ParamType.INT,
    "short": ParamType.INT,
    "float": ParamType.FLOAT,
    "double": ParamType.DOUBLE,
    "boolean": ParamType.BOOLEAN,
    "bool": ParamType.BOOLEAN,
    "uri": ParamType.URI,
}


def shell_token(value: str) -> str:
    """Quote a value as one shell word, folding line breaks so commands stay single-line."""
    flattened = " ".join(value.splitlines()) if value else value
    if flattened == "":
        return "''"
    return shlex.quote(flattened)


class IntentParameter(BaseModel):
    """A single resolved parameter of an adb intent command."""

    model_config = ConfigDict(frozen=True)

    name: str
    declared_type: ParamType = Field(default=ParamType.UNKNOWN)
    value: str = Field(default="", description="Literal value, possibly a generated default")
    flag: IntentFlag

    def render(self) -> str:
        """Render as `{flag} {value}` for the command line."""
        return f"{self.flag.value} {shell_token(self.value)}"

    def __str__(self) -> str:
        return self.render()


class ExtractedParameter(BaseModel):
    """A parameter recovered from an intent accessor call in source code."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Extra key (unquoted string literal or constant name)")
    param_type: str = Field(description="string, int, float, boolean, uri or unknown")
    value: str = Field(description="Default value argument, or the type name as placeholder")
    method_name: str = Field(description="Accessor invoked, e.g. getStringExtra")

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        return (self.key, self.param_type, self.method_name)


class InferredParameter(BaseModel):
    """Raw parameter as returned by the semantic inference agent."""

    name: str = Field(description="Parameter name, e.g. action, category, data or an extra key")
    type: str = Field(default="String", description="Type name, e.g. String, Integer, Boolean, Uri")
    value: str | None = Field(default=None, description="Value; full URI string for data")
    flag: str = Field(description="One of -a, -c, -d, -t, -e, -f")


class InferenceResult(BaseModel):
    """Structured answer of the semantic inference agent."""

    params: list[InferredParameter]
    confidence: float = Field(ge=0.0, le=1.0)
