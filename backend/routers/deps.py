"""
Shared router dependencies. The service and settings are built once in main.py
and kept on app.state; tests swap them through dependency_overrides.
"""
from typing import Any, Dict
from fastapi import Depends, Request

from adapters.feishu import verify_request
from constants import FEISHU_REQUEST_MAX_SKEW_SECONDS, FEISHU_VERIFY_REQUEST, SETTINGS_DEFAULT
from engine.service import BitableService
from services.settings import get_setting


def get_bitable_service(request: Request) -> BitableService:
    return request.app.state.bitable_service


def get_settings(request: Request) -> Dict[str, Any]:
    return getattr(request.app.state, "settings", SETTINGS_DEFAULT)


def verify_feishu_request(request: Request, settings: Dict[str, Any] = Depends(get_settings)) -> None:
    if not get_setting(settings, FEISHU_VERIFY_REQUEST, False):
        return
    max_skew = int(get_setting(settings, FEISHU_REQUEST_MAX_SKEW_SECONDS, 300))
    verify_request(request.headers, max_skew)
