"""
Feishu Bitable data-connector wire models.
``params`` and ``context`` arrive as JSON strings and are decoded in a second pass.
"""
import json
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, Field, field_validator

from schemas.datasource import DatasourceConfig


class FeishuRequest(BaseModel):
    params: str
    context: Optional[Union[str, Dict[str, Any]]] = None


class FeishuParams(BaseModel):
    datasourceConfig: DatasourceConfig
    transactionID: Optional[str] = None
    pageToken: Optional[str] = None
    maxPageSize: Optional[int] = None

    @field_validator("datasourceConfig", mode="before")
    @classmethod
    def _decode_config(cls, v: Any) -> Any:
        if isinstance(v, (str, bytes)):
            return json.loads(v)
        return v


class FeishuBitableContext(BaseModel):
    token: Optional[str] = None
    logID: Optional[str] = None


class FeishuScriptArgs(BaseModel):
    projectURL: Optional[str] = None
    baseOpenID: Optional[str] = None


class FeishuContext(BaseModel):
    bitable: FeishuBitableContext = Field(default_factory=FeishuBitableContext)
    packID: Optional[str] = None
    type: Optional[str] = None
    tenantKey: Optional[str] = None
    userTenantKey: Optional[str] = None
    bizInstanceID: Optional[str] = None
    scriptArgs: FeishuScriptArgs = Field(default_factory=FeishuScriptArgs)
