import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from ..core.http_client import get_http_client
from ..services.ocr import OCRService, UploadedFile, ocr_service_info
from ..utils.helpers import ORJSONResponse, new_request_id

logger = logging.getLogger("Gawin.Routers.OCR")
router = APIRouter()


def get_ocr_service(request: Request) -> OCRService:
    return request.app.state.ocr_service


@router.post("/api/ocr", response_class=ORJSONResponse, summary="OCR and document analysis", tags=["OCR"])
async def run_ocr(
    files: Optional[List[UploadFile]] = File(None),
    query: str = Form(""),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    ocr_service: OCRService = Depends(get_ocr_service),
):
    request_id = new_request_id()
    uploads = []
    for upload in files or []:
        data = await upload.read()
        uploads.append(UploadedFile(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            data=data,
        ))

    result = await ocr_service.process(uploads, query, http_client, request_id=request_id)
    return {"success": True, "data": result}


@router.get("/api/ocr", response_class=ORJSONResponse, summary="OCR limits and status", tags=["OCR"])
async def ocr_status():
    return {"success": True, "data": ocr_service_info()}
