"""Minimal FastAPI app answering with the response envelope.

    SHP_DATA_DIR=./data uvicorn examples.api_app:app --port 8080

``/shp`` only reads files under ``SHP_DATA_DIR`` (default ``./data``).
"""

import os
from pathlib import Path

from fastapi import FastAPI

from boot_core import http_result
from boot_core.http_result import HttpResultException
from boot_core.shp import ShapefileError, parse_shp_file

DATA_DIR = Path(os.getenv("SHP_DATA_DIR", "data")).resolve()

app = FastAPI(title="boot_core example")
http_result.register_exception_handlers(app)


@app.get("/ping")
def ping():
    return http_result.success("pong").send()


@app.get("/shp")
def shp_info(path: str):
    target = (DATA_DIR / path).resolve()
    if not target.is_relative_to(DATA_DIR):
        raise HttpResultException(403, "path is outside the data directory")
    try:
        info = parse_shp_file(str(target))
    except ShapefileError as e:
        raise HttpResultException(400, str(e)) from e
    return http_result.success(info.to_dict()).send()
