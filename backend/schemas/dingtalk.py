"""
DingTalk AI Table data-source wire models.
Scalar fields accept JSON null, which the platform sends for unset values.
"""
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel


class DingTalkContext(BaseModel):
    unionId: Optional[str] = None
    corpId: Optional[str] = None


class SheetMetaRequest(BaseModel):
    requestId: Optional[str] = None
    params: Union[str, Dict[str, Any]]
    context: Optional[DingTalkContext] = None


class RecordsRequest(SheetMetaRequest):
    maxResults: Optional[int] = None
    nextToken: Optional[str] = None
