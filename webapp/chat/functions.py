"""Python callables exposed to the model as tools."""

from __future__ import annotations

import functools
import inspect
import json
from collections.abc import Callable
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, create_model


class ChatFunction:
    """A callable plus the JSON schema the model sees for it.

    Parameters are described by a pydantic model built from the callable's
    signature, so ``Annotated[str, Field(description=...)]`` hints end up in
    the tool definition and arguments are validated before the call.
    """

    def __init__(
        self,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
    ):
        self.func = func
        self.name = name or func.__name__
        self.description = description or inspect.getdoc(func) or ""
        self.arguments_model = _arguments_model(func, self.name)

    def tool_definition(self) -> dict[str, Any]:
        schema = self.arguments_model.model_json_schema()
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }

    async def invoke(self, raw_arguments: str | None) -> Any:
        arguments = json.loads(raw_arguments) if raw_arguments else {}
        validated = self.arguments_model.model_validate(arguments)
        kwargs = {field: getattr(validated, field) for field in type(validated).model_fields}
        result = self.func(**kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result


def _arguments_model(func: Callable[..., Any], name: str) -> type[BaseModel]:
    # Bound methods share the model of their underlying function.
    if inspect.ismethod(func):
        return _build_arguments_model(func.__func__, name, skip_first=True)
    return _build_arguments_model(func, name, skip_first=False)


@functools.lru_cache(maxsize=None)
def _build_arguments_model(func: Callable[..., Any], name: str, skip_first: bool) -> type[BaseModel]:
    hints = get_type_hints(func, include_extras=True)
    fields: dict[str, Any] = {}
    params = list(inspect.signature(func).parameters.values())
    for param in params[1:] if skip_first else params:
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, Any)
        default = ... if param.default is param.empty else param.default
        fields[param.name] = (annotation, default)
    return create_model(
        f"{name}_arguments",
        __config__=ConfigDict(extra="ignore"),
        **fields,
    )


def serialize_result(result: Any) -> str:
    """Render a function result as the text content of a ``tool`` message."""
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    if isinstance(result, list) and all(isinstance(r, BaseModel) for r in result):
        return json.dumps([r.model_dump(mode="json", by_alias=True) for r in result])
    return json.dumps(result, default=str)
