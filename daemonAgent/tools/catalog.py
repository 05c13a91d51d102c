"""Tool descriptors, argument schemas and the immutable catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Tuple, Type, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from daemonAgent.models.enums import RiskTier
from daemonAgent.utils.error_handler import ArgumentValidationError

LOGGER = logging.getLogger(__name__)

ParamType = Literal["string", "int", "bool", "number", "enum"]
ValidatedArguments = Dict[str, Any]

_PYDANTIC_TYPES: Dict[str, Any] = {
    "string": StrictStr,
    "int": StrictInt,
    "bool": StrictBool,
    "number": Union[StrictInt, StrictFloat],
}

_JSON_TYPES = {
    "string": "string",
    "int": "integer",
    "bool": "boolean",
    "number": "number",
    "enum": "string",
}


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """One named argument of a tool."""

    name: str
    type: ParamType
    description: str = ""
    required: bool = True
    enum_values: Tuple[str, ...] = ()

    def annotation(self) -> Any:
        if self.type == "enum":
            if not self.enum_values:
                raise ValueError(f"Enum parameter '{self.name}' declares no values")
            return Literal[self.enum_values]
        return _PYDANTIC_TYPES[self.type]

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": _JSON_TYPES[self.type], "description": self.description}
        if self.enum_values:
            schema["enum"] = list(self.enum_values)
        return schema


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Governance and schema attributes of one tool.

    ``capability`` is the class a Scope must name to pre-approve the tool;
    ``path_arguments`` lists the arguments that carry filesystem targets.
    MCP tools carry a ``raw_schema`` instead of parameter specs.
    """

    name: str
    description: str
    risk_tier: RiskTier
    parameters: Tuple[ParameterSpec, ...] = ()
    title: str = ""
    capability: str = ""
    path_arguments: Tuple[str, ...] = ()
    required_permissions: Tuple[str, ...] = ()
    ui_interaction: bool = False
    foreground_locked: bool = False
    raw_schema: Optional[Mapping[str, Any]] = None
    args_model: Optional[Type[BaseModel]] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.capability:
            object.__setattr__(self, "capability", self.name)
        if self.raw_schema is None:
            object.__setattr__(self, "args_model", self._build_args_model())

    def _build_args_model(self) -> Type[BaseModel]:
        fields: Dict[str, Any] = {}
        for param in self.parameters:
            if param.required:
                fields[param.name] = (param.annotation(), Field(..., description=param.description))
            else:
                fields[param.name] = (Optional[param.annotation()], Field(None, description=param.description))
        model_name = "".join(part.capitalize() for part in self.name.split("_")) + "Args"
        return create_model(model_name, __config__=ConfigDict(extra="ignore"), **fields)

    @property
    def display_title(self) -> str:
        return self.title or self.name.replace("_", " ").title()

    @property
    def is_mcp(self) -> bool:
        return self.raw_schema is not None

    def json_schema(self) -> Dict[str, Any]:
        if self.raw_schema is not None:
            return dict(self.raw_schema)
        return {
            "type": "object",
            "properties": {param.name: param.json_schema() for param in self.parameters},
            "required": [param.name for param in self.parameters if param.required],
        }

    def function_schema(self) -> Dict[str, Any]:
        """OpenAI-style function schema, as accepted by ``bind_tools``."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.json_schema(),
            },
        }

    def validate(self, arguments: Mapping[str, Any]) -> ValidatedArguments:
        if self.raw_schema is not None:
            required = self.raw_schema.get("required") or []
            missing = [key for key in required if key not in arguments]
            if missing:
                raise ArgumentValidationError(
                    f"{self.name}: missing required arguments {missing}",
                    user_message=f"Missing required argument(s) for {self.name}: {', '.join(missing)}.",
                )
            return dict(arguments)

        try:
            parsed = self.args_model.model_validate(dict(arguments))
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or '<root>'}: {err['msg']}" for err in exc.errors()
            )
            raise ArgumentValidationError(
                f"{self.name}: {problems}",
                user_message=f"Invalid arguments for {self.name}: {problems}.",
            ) from exc
        return parsed.model_dump(exclude_none=True)


class ToolCatalog:
    """Immutable registry of tool descriptors."""

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()) -> None:
        table: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in table:
                raise ValueError(f"Duplicate tool name: {descriptor.name}")
            table[descriptor.name] = descriptor
        self._descriptors: Mapping[str, ToolDescriptor] = MappingProxyType(table)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self):
        return iter(self._descriptors.values())

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._descriptors.get(name)

    def require(self, name: str) -> ToolDescriptor:
        if name not in self._descriptors:
            raise KeyError(f"Unknown tool: {name}")
        return self._descriptors[name]

    def names(self) -> List[str]:
        return list(self._descriptors)

    def tool_schemas(self) -> List[Dict[str, Any]]:
        return [descriptor.function_schema() for descriptor in self._descriptors.values()]

    def validate(self, name: str, arguments: Mapping[str, Any]) -> ValidatedArguments:
        """Validate ``arguments`` against the tool's declared schema.

        Raises:
            KeyError: If the tool is not in the catalog
            ArgumentValidationError: If the arguments do not match
        """
        return self.require(name).validate(arguments)

    def with_tools(self, *descriptors: ToolDescriptor) -> "ToolCatalog":
        """Return a new catalog with ``descriptors`` added or replacing same-named entries."""
        merged = dict(self._descriptors)
        for descriptor in descriptors:
            if descriptor.name in merged:
                LOGGER.info("Replacing tool descriptor: %s", descriptor.name)
            merged[descriptor.name] = descriptor
        return ToolCatalog(merged.values())

    def with_mcp_tools(self, server: str, tools: Iterable[Mapping[str, Any]]) -> "ToolCatalog":
        """Register tools announced by an MCP server.

        Each entry is the server's ``{name, description, inputSchema}`` listing.
        MCP tools run at caution tier under the ``mcp:<server>`` capability.
        """
        descriptors = []
        for tool in tools:
            name = tool["name"]
            descriptors.append(
                ToolDescriptor(
                    name=name,
                    description=tool.get("description") or f"MCP tool {name} from {server}",
                    risk_tier=RiskTier.CAUTION,
                    title=f"{name} ({server})",
                    capability=f"mcp:{server}",
                    raw_schema=MappingProxyType(dict(tool.get("inputSchema") or {"type": "object", "properties": {}})),
                )
            )
        LOGGER.info("Registered %d MCP tool(s) from %s", len(descriptors), server)
        return self.with_tools(*descriptors)
