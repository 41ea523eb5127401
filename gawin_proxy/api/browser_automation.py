import logging
from typing import Any

import orjson
from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import ValidationError
from ..models.api_models import BrowserAutomationRequest
from ..services.browser_sessions import BrowserAutomationService
from ..utils.helpers import ORJSONResponse, new_request_id

logger = logging.getLogger("Gawin.Routers.Browser")
router = APIRouter()


def get_browser_service(request: Request) -> BrowserAutomationService:
    return request.app.state.browser_service


@router.post("/api/browser-automation", response_class=ORJSONResponse, summary="Drive a headless browser session", tags=["Browser"])
async def browser_automation(request: Request, service: BrowserAutomationService = Depends(get_browser_service)):
    request_id = new_request_id()
    try:
        payload: Any = orjson.loads(await request.body() or b"{}")
        action_request = BrowserAutomationRequest.model_validate(payload)
    except orjson.JSONDecodeError as e:
        raise ValidationError("Invalid request: body is not valid JSON", details=str(e))
    except PydanticValidationError as e:
        raise ValidationError("Invalid request: action is required", details=str(e.errors()[:3]))

    return await service.execute(action_request, request_id=request_id)


@router.get("/api/browser-automation", response_class=ORJSONResponse, summary="Available browser actions", tags=["Browser"])
async def browser_automation_info(service: BrowserAutomationService = Depends(get_browser_service)):
    return service.info()
