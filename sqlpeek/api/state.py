"""
Process-wide objects shared by the API routers.

Keys: "global_config" (GlobalConfig), "tracker" (QueryTracker).
"""
from typing import Any, Dict

app_state: Dict[str, Any] = {}
