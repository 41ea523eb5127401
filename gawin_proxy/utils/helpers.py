import math
import uuid
import logging
import datetime
from typing import Any, Dict, Optional

import orjson
from fastapi.responses import JSONResponse

from ..core.config import COMMON_HEADERS

logger = logging.getLogger("Gawin.Utils")


class ORJSONResponse(JSONResponse):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS | orjson.OPT_SERIALIZE_DATACLASS)


def error_response(
    code: int,
    msg: str,
    details: Optional[str] = None,
    request_id: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> ORJSONResponse:
    log_msg = f"Error {code}: {msg}" + (f" ({details})" if details else "")
    if request_id:
        log_msg = f"RID-{request_id}: {log_msg}"
    logger.warning(log_msg)
    content: Dict[str, Any] = {"success": False, "error": msg}
    if details:
        content["details"] = details
    return ORJSONResponse(
        status_code=code,
        content=content,
        headers={**COMMON_HEADERS, **(headers or {})}
    )


def mask_api_key_for_log(api_key: Optional[str]) -> str:
    if not api_key:
        return "(empty)"
    head = api_key[:4]
    tail = api_key[-4:] if len(api_key) > 8 else "****"
    return f"{head}...{tail} (len={len(api_key)})"


def estimate_tokens(text: str) -> int:
    """Rough estimate, ~4 characters per token."""
    if not text:
        return 0
    return max(1, math.ceil(len(text) / 4))


def new_request_id() -> str:
    return str(uuid.uuid4())


def get_current_time_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")
