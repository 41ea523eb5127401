import logging
from typing import Any, Dict

import httpx
import orjson
from fastapi import APIRouter, Depends, Request

from ..core.errors import MalformedRequestError
from ..core.http_client import get_http_client
from ..services.chat_pipeline import ChatPipeline, PipelineOutcome
from ..services.providers import ProviderRegistry
from ..services.response_filter import filter_response
from ..services.terminal_responder import FALLBACK_MODEL
from ..utils.helpers import ORJSONResponse, error_response, new_request_id

logger = logging.getLogger("Gawin.Routers.Chat")
router = APIRouter()


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.provider_registry


def get_pipelines(request: Request) -> Dict[str, ChatPipeline]:
    return request.app.state.chat_pipelines


def build_chat_response(outcome: PipelineOutcome) -> Dict[str, Any]:
    result = outcome.result
    content = result.content or ""
    if not outcome.terminal:
        content = filter_response(content)
    body: Dict[str, Any] = {
        "success": True,
        "choices": [
            {
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
                "index": 0,
            }
        ],
        "model": result.model_used,
        "usage": result.usage.to_dict() if result.usage else {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
        "provider": result.provider,
        "fallback_used": outcome.fallback_used,
    }
    if outcome.fallback_reasons:
        body["fallback_reasons"] = outcome.fallback_reasons
    return body


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        raise MalformedRequestError()
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MalformedRequestError("Invalid request: body is not valid JSON", details=str(e))


@router.post("/api/{route}", response_class=ORJSONResponse, summary="Chat completion with provider fallback", tags=["Chat"])
async def chat_completion(
    route: str,
    request: Request,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    pipelines: Dict[str, ChatPipeline] = Depends(get_pipelines),
):
    request_id = new_request_id()
    pipeline = pipelines.get(route)
    if pipeline is None:
        return error_response(404, f"Unknown route: {route}", request_id=request_id)

    payload = await _read_json_body(request)
    outcome = await pipeline.handle(payload, http_client, request_id=request_id)

    logger.info(
        f"RID-{request_id}: /api/{route} answered by '{outcome.result.provider}' "
        f"(model '{outcome.result.model_used}', fallback_used={outcome.fallback_used})"
    )
    return ORJSONResponse(content=build_chat_response(outcome), headers={"X-Request-ID": request_id})


@router.get("/api/{route}", response_class=ORJSONResponse, summary="Describe a chat route", tags=["Chat"])
async def describe_route(route: str, registry: ProviderRegistry = Depends(get_registry)):
    if not registry.has_route(route):
        return error_response(404, f"Unknown route: {route}")
    return {
        "success": True,
        "data": {
            "route": route,
            "chain": [adapter.describe() for adapter in registry.chain_for(route)],
            "fallback": FALLBACK_MODEL,
        },
    }
