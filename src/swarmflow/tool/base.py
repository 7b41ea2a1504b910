"""Tool definition with Pydantic parameter validation."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, get_type_hints

from pydantic import BaseModel, create_model

logger = logging.getLogger(__name__)

# Name of the parameter through which a tool receives the session context.
# It is never exposed in the tool schema.
CONTEXT_PARAM = "context"


@dataclass
class Tool:
    """A callable the model may invoke.

    The turn loop treats tools as black boxes: it only needs ``name`` for
    flow-rule filtering and usage tracking, and ``callable`` for execution.
    ``parameters`` is the JSON schema sent to the model.

    Usage:
        def lookup_order(order_id: str, context: dict) -> str:
            \"\"\"Look up an order by id.\"\"\"
            ...

        tool = Tool.from_function(lookup_order)
    """

    name: str
    callable: Callable[..., Any]
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    param_model: type[BaseModel] | None = None

    def __post_init__(self) -> None:
        if self.param_model is not None and self.parameters == {
            "type": "object",
            "properties": {},
        }:
            self.parameters = _schema_from_model(self.param_model)

    @property
    def wants_context(self) -> bool:
        """Whether the callable declares a ``context`` parameter."""
        try:
            params = inspect.signature(self.callable).parameters
        except (TypeError, ValueError):
            return False
        return CONTEXT_PARAM in params

    def __call__(self, arguments: dict[str, Any], context: dict[str, Any]) -> Any:
        """Validate arguments and run the callable.

        Returns the raw value; exceptions propagate to the caller.
        """
        kwargs = dict(arguments)
        if self.param_model is not None:
            params = self.param_model.model_validate(kwargs)
            kwargs = {
                key: getattr(params, key) for key in type(params).model_fields
            }
        if self.wants_context:
            kwargs[CONTEXT_PARAM] = context
        return self.callable(**kwargs)

    def to_openai_spec(self) -> dict[str, Any]:
        """Convert to OpenAI function tool specification."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
    ) -> Tool:
        """Build a tool from a plain function.

        The parameter model is derived from the signature (type hints and
        defaults). ``context``, ``*args`` and ``**kwargs`` are left out of the
        schema. The description defaults to the first paragraph of the
        docstring.
        """
        tool_name = name or func.__name__
        param_model = _model_from_signature(tool_name, func)
        if description is None:
            doc = inspect.getdoc(func) or ""
            description = doc.split("\n\n", 1)[0].strip()
        return cls(
            name=tool_name,
            callable=func,
            description=description,
            param_model=param_model,
        )


def _model_from_signature(tool_name: str, func: Callable[..., Any]) -> type[BaseModel]:
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        logger.debug("Could not resolve type hints for %s", tool_name)
        hints = {}

    fields: dict[str, Any] = {}
    for pname, param in inspect.signature(func).parameters.items():
        if pname == CONTEXT_PARAM:
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(pname, Any)
        default = param.default if param.default is not param.empty else ...
        fields[pname] = (annotation, default)
    return create_model(f"{tool_name}_params", **fields)


def _schema_from_model(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    # Pydantic adds a top-level title
    schema.pop("title", None)
    return schema


def to_display_text(value: Any) -> str:
    """Convert a tool's return value to the text shown to the model.

    Strings pass through unchanged; values exposing an ``output`` field use
    it; anything else falls back to ``str()``.
    """
    if isinstance(value, str):
        return value
    output = getattr(value, "output", None)
    if output is not None:
        return output if isinstance(output, str) else str(output)
    return str(value)
