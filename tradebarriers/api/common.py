"""
Shared helpers for the REST routers.
"""

from typing import Any, Iterable, Literal

from pydantic import BaseModel

# Output naming: snake_case by default, camelCase with ?case=camel
OutputCase = Literal["snake", "camel"]


def dump(model: BaseModel, case: OutputCase = "snake") -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=case == "camel")


def dump_all(models: Iterable[BaseModel], case: OutputCase = "snake") -> list[dict[str, Any]]:
    return [dump(m, case) for m in models]
