"""Exceptions raised when a user's tier does not unlock an operation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse


@dataclass
class FeatureGateError(Exception):
    """Gating failure carrying a machine-readable code for the client."""

    code: str
    message: str
    status_code: int = status.HTTP_403_FORBIDDEN
    detail: Optional[Mapping[str, Any]] = None
    upgrade_path: str = "/dashboard/subscription"

    def __post_init__(self) -> None:
        body: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "upgradePath": self.upgrade_path,
        }
        if self.detail:
            body.update(self.detail)
        object.__setattr__(self, "_payload", body)
        super().__init__(self.message)

    @property
    def payload(self) -> Mapping[str, Any]:
        return self._payload

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=dict(self.payload))

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=dict(self.payload))
