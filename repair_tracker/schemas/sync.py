"""Messages exchanged over the persistent sync channel."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

MESSAGE_REQUEST_DATA = "requestData"
MESSAGE_INITIAL_DATA = "initialData"
MESSAGE_DATA_UPDATE = "dataUpdate"


class RequestDataMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["requestData"]
    file: str


class DocumentMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["initialData", "dataUpdate"]
    file: str
    data: Any = None


def initial_data(file: str, data: Any) -> dict[str, Any]:
    return {"type": MESSAGE_INITIAL_DATA, "file": file, "data": data}


def data_update(file: str, data: Any) -> dict[str, Any]:
    return {"type": MESSAGE_DATA_UPDATE, "file": file, "data": data}


def request_data(file: str) -> dict[str, Any]:
    return {"type": MESSAGE_REQUEST_DATA, "file": file}


__all__ = [
    "DocumentMessage",
    "MESSAGE_DATA_UPDATE",
    "MESSAGE_INITIAL_DATA",
    "MESSAGE_REQUEST_DATA",
    "RequestDataMessage",
    "data_update",
    "initial_data",
    "request_data",
]
