"""Uniform JSON response envelope: ``{"code": int, "data": any, "msg": str}``.

Usage:
    @app.get("/items/{item_id}")
    def get_item(item_id: int):
        item = repo.get(item_id)
        if item is None:
            return http_result.error(404, "item not found").send()
        return http_result.success(item).send()
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException


logger = logging.getLogger(__name__)

DEFAULT_SUCCESS_MSG = "操作成功"
SUCCESS_CODE = 200
ERROR_CODE = 500


@dataclass(frozen=True)
class HttpResult:
    code: int
    data: Any
    msg: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "data": self.data, "msg": self.msg}

    def send(self) -> JSONResponse:
        """Render as a JSON response whose HTTP status equals ``code``."""
        return JSONResponse(status_code=self.code, content=jsonable_encoder(self.to_dict()))


def success(data: Any = None, msg: str = "") -> HttpResult:
    return HttpResult(code=SUCCESS_CODE, data=data, msg=msg or DEFAULT_SUCCESS_MSG)


def error(code: int = 0, msg: str = "") -> HttpResult:
    """Error envelope; a zero code means the default 500."""
    return HttpResult(code=code or ERROR_CODE, data=None, msg=msg)


def fail(msg: str = "") -> HttpResult:
    return HttpResult(code=ERROR_CODE, data=None, msg=msg)


class HttpResultException(Exception):
    """Raise from a route to abort with an error envelope."""

    def __init__(self, code: int = 0, msg: str = ""):
        super().__init__(msg)
        self.result = error(code, msg)


async def _result_exception_handler(request: Request, exc: HttpResultException):
    return exc.result.send()


async def _http_exception_handler(request: Request, exc: HTTPException):
    response = error(exc.status_code, str(exc.detail)).send()
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception in {request.method} {request.url.path}: {exc}", exc_info=exc)
    return fail("Internal server error").send()


def register_exception_handlers(app: FastAPI) -> None:
    """Make every error leaving ``app`` use the envelope body."""
    app.add_exception_handler(HttpResultException, _result_exception_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
