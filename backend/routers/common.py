#!/usr/bin/env python3
"""Shared router plumbing: app-state dependencies, camelCase models, error wrapping"""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from errors import SentinelError

logger = logging.getLogger(__name__)


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def get_repository(request: Request):
    return request.app.state.repository


def get_scorer(request: Request):
    return request.app.state.scorer


def get_hub(request: Request):
    return request.app.state.hub


def get_scan_scheduler(request: Request):
    return request.app.state.scan_scheduler


def require(value: Optional[str], message: str) -> str:
    """400 unless a required parameter is present and non-empty"""
    if not value:
        raise HTTPException(status_code=400, detail=message)
    return value


@contextmanager
def failing_with(message: str):
    """Turn unexpected errors into a 500 carrying ``message``"""
    try:
        yield
    except (HTTPException, SentinelError):
        raise
    except Exception as e:
        logger.error(f"{message}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=message)
