"""Envelopes wrapping every report service response."""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel


class ErrorEnvelope(BaseModel):
    """Failure body; ``error`` is the message shown to the patient."""

    success: Literal[False] = False
    error: Any


class SuccessEnvelope(BaseModel):
    success: Literal[True] = True
    data: Optional[Any] = None


def envelope(view: Union[BaseModel, dict, None]) -> dict[str, Any]:
    """Wrap a view, dumped under its camelCase aliases, in a success envelope."""

    data = view.model_dump(by_alias=True) if isinstance(view, BaseModel) else view
    return SuccessEnvelope(data=data).model_dump()


def error_envelope(error: Any) -> dict[str, Any]:
    return ErrorEnvelope(error=error).model_dump()
