"""
API 回應格式

所有 endpoint 都回 HTTP 200，成功或失敗看信封裡的 status / msg：
    {"status": "ok" | "failed", "msg": "...", "data": ...}
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ParticipantOut(BaseModel):
    id: str = Field(serialization_alias="Id")
    balance: int


class WagerOut(BaseModel):
    id: str = Field(serialization_alias="Id")
    round: int = Field(serialization_alias="Round")
    amount: int = Field(serialization_alias="Amount")


class RoundStatusOut(BaseModel):
    round: int
    started_at: str
    closes_in: float
    pool: int
    phase: str
    last_result: Optional[dict] = None


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True)
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


class ApiResponse(BaseModel):
    status: Literal["ok", "failed"] = "ok"
    msg: str = ""
    data: Any = Field(default_factory=list)

    @classmethod
    def ok(cls, data: Any = None) -> "ApiResponse":
        return cls(status="ok", data=[] if data is None else _dump(data))

    @classmethod
    def failed(cls, msg: str) -> "ApiResponse":
        return cls(status="failed", msg=msg)

