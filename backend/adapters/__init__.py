from typing import Any, Dict, Optional

# Protocol adapters by platform name
ADAPTER_REGISTRY: Dict[str, Any] = {}


def register_adapter(platform: str, adapter: Any):
    ADAPTER_REGISTRY[platform] = adapter


def get_adapter(platform: str):
    adapter = ADAPTER_REGISTRY.get(platform)
    if not adapter:
        raise ValueError(f"No protocol adapter registered for platform: {platform}")
    return adapter


# Source explorer helpers answer in the DingTalk envelope under either prefix
HELPER_ACTIONS = {"databases", "tables", "fields", "preview_sql"}
HELPER_PLATFORM = "dingtalk"


def adapter_for_path(path: str) -> Optional[Any]:
    """Adapter whose envelope a request path answers in, or None outside the platform prefixes."""
    parts = path.strip("/").split("/")
    if not parts or parts[0] not in ADAPTER_REGISTRY:
        return None
    if parts[-1] in HELPER_ACTIONS:
        return ADAPTER_REGISTRY.get(HELPER_PLATFORM)
    return ADAPTER_REGISTRY[parts[0]]


def error_code_for(codes: Dict[type, int], exc: BaseException, default: int) -> int:
    for cls in type(exc).__mro__:
        if cls in codes:
            return codes[cls]
    return default


# Register known adapters here
from .feishu import FeishuAdapter
from .dingtalk import DingTalkAdapter
register_adapter(FeishuAdapter.name, FeishuAdapter())
register_adapter(DingTalkAdapter.name, DingTalkAdapter())
