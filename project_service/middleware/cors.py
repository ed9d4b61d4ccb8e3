# project_service/middleware/cors.py
from __future__ import annotations

from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from project_service.middleware.logging import HEADER_NAME


def add_cors(app: FastAPI, origins: List[str]) -> None:
    wildcard = origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # browsers reject credentials together with a wildcard origin
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=[HEADER_NAME],
        max_age=600,
    )
