"""Node type records: the vocabulary graphs are built from."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Category = Literal["trigger", "transform", "action"]
CATEGORIES: tuple[str, ...] = ("trigger", "transform", "action")

ParamKind = Literal["string", "number", "boolean", "array", "object"]

BUILT_IN_APP = "built-in"


class ParamSpec(BaseModel):
    """Declared shape of one node parameter."""

    model_config = ConfigDict(frozen=True)

    type: Optional[ParamKind] = None
    enum: Optional[list[Any]] = None
    default: Any = None
    description: str = ""

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {}
        if self.type:
            schema["type"] = self.type
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        if self.description:
            schema["description"] = self.description
        return schema


class ParamsSchema(BaseModel):
    """Required parameter names plus per-parameter specs."""

    model_config = ConfigDict(frozen=True)

    required: list[str] = Field(default_factory=list)
    properties: dict[str, ParamSpec] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _required_are_declared(self) -> "ParamsSchema":
        missing = [name for name in self.required if name not in self.properties]
        if missing:
            raise ValueError(f"Required params not declared in properties: {', '.join(missing)}")
        return self

    def to_json_schema(self) -> dict[str, Any]:
        """Render as a JSON-schema-shaped object description."""
        return {
            "type": "object",
            "required": list(self.required),
            "properties": {name: spec.to_json_schema() for name, spec in sorted(self.properties.items())},
        }


class RequestTemplate(BaseModel):
    """HTTP request hint for connector operations, used only by the compiler."""

    model_config = ConfigDict(frozen=True)

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()


class NodeType(BaseModel):
    """One operation the system can place in a graph.

    ``request``, ``auth`` and ``complexity`` are internal: they guide code
    generation and display but are never shown to the planner.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: Category
    app: str = BUILT_IN_APP
    params_schema: ParamsSchema = Field(default_factory=ParamsSchema)
    required_scopes: list[str] = Field(default_factory=list)

    request: Optional[RequestTemplate] = None
    auth: Optional[str] = None
    complexity: str = "Simple"

    @field_validator("required_scopes")
    @classmethod
    def dedupe_scopes(cls, v: list[str]) -> list[str]:
        return sorted(set(v))

    @property
    def operation(self) -> str:
        """The id without its category and app prefixes.

        Examples:
            ``action.gmail.send`` with app ``gmail`` gives ``send``;
            ``transform.filter.expr`` with the built-in app gives ``filter.expr``.
        """
        rest = self.id
        prefix = f"{self.category}."
        if rest.startswith(prefix):
            rest = rest[len(prefix) :]
        app_prefix = f"{self.app}."
        if self.app != BUILT_IN_APP and rest.startswith(app_prefix):
            rest = rest[len(app_prefix) :]
        return rest

    @property
    def dispatch_key(self) -> tuple[str, str, str]:
        return (self.category, self.app, self.operation)


class Capabilities(BaseModel):
    """Read-only projection of the catalog handed to planners."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    nodes: list[str]
    schemas_by_type: dict[str, dict[str, Any]] = Field(alias="schemasByType")
    scopes_by_type: dict[str, list[str]] = Field(alias="scopesByType")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
