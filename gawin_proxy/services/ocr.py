"""
OCR and document analysis.

Images go through the vision chain one file at a time; the text that comes
back is then analysed through a regular chat chain. PDFs are only reported,
callers are asked to convert them to images.
"""
import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.config import OCR_ALLOWED_MIME_TYPES, OCR_MAX_FILES, OCR_MAX_FILE_SIZE_MB
from ..core.errors import FileValidationError
from ..models.api_models import ChatMessage, ChatRequestModel, ImageUrl, ImageUrlContentPart, TextContentPart
from .fallback import FallbackSequencer
from .response_filter import filter_response
from .validation import ValidatedRequest, ValidationService

logger = logging.getLogger("Gawin.OCR")

OCR_INSTRUCTION = (
    "Extract all text visible in this image. Preserve the reading order and the document "
    "structure (headings, lists, tables). Return only the extracted text. If the image "
    "contains no text, describe its content in one or two sentences."
)

ANALYST_SYSTEM_PROMPT = (
    "You are Gawin AI, an intelligent document analyst. The user has uploaded files and you have "
    "successfully extracted text content. Provide helpful, accurate analysis of the extracted content."
)

PDF_NOTICE = "PDF detected. For best results, please convert PDF pages to images and re-upload."

VISION_UNAVAILABLE_REPLY = (
    "I'm currently unable to analyze images or perform OCR (text extraction) because the vision "
    "models are temporarily unavailable.\n\n"
    "**Alternative approaches:**\n"
    "- If your images contain text, you can type or paste it and I'll analyze it\n"
    "- For questions about visual content, you can describe what you see\n"
    "- All other capabilities (math, coding, writing, research) keep working"
)

PDF_ONLY_REPLY = (
    "I see you've uploaded PDF files. For the best OCR and text extraction results, convert your PDF "
    "pages to high-quality images (PNG or JPG) and upload them again.\n\n"
    "This usually gives more accurate text extraction than processing PDFs directly."
)


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_pdf(self) -> bool:
        return self.content_type == "application/pdf"

    def data_uri(self) -> str:
        return f"data:{self.content_type};base64,{base64.b64encode(self.data).decode('ascii')}"


def _validated(messages: Sequence[ChatMessage], action: Optional[str] = None) -> ValidatedRequest:
    request = ChatRequestModel(messages=tuple(messages), action=action)
    return ValidatedRequest(request=request, last_user_text=messages[-1].text())


def _framed_extraction(extracted_text: str) -> str:
    return (
        "I've successfully extracted text from your uploaded files. Here's what I found:\n\n"
        f"{extracted_text}\n\n"
        "*Feel free to ask me any questions about this content!*"
    )


class OCRService:
    def __init__(
        self,
        validation_service: ValidationService,
        vision_sequencer: Optional[FallbackSequencer],
        analysis_sequencer: FallbackSequencer,
    ):
        self.validation_service = validation_service
        self.vision_sequencer = vision_sequencer
        self.analysis_sequencer = analysis_sequencer

    def validate_uploads(self, files: Sequence[UploadedFile]) -> None:
        if not files:
            raise FileValidationError("No files provided")
        if len(files) > OCR_MAX_FILES:
            raise FileValidationError(f"Maximum {OCR_MAX_FILES} files allowed")
        for f in files:
            errors = self.validation_service.validate_file_upload(f.filename, f.content_type, f.size)
            if errors:
                raise FileValidationError(errors[0], details="; ".join(errors[1:]) or None)

    async def _extract_image_text(self, f: UploadedFile, http_client: httpx.AsyncClient, request_id: str) -> Dict[str, Any]:
        if self.vision_sequencer is None:
            return {"filename": f.filename, "type": "image", "status": "unavailable",
                    "error": "Image analysis unavailable: no vision-capable provider configured"}

        message = ChatMessage(role="user", content=(
            TextContentPart(text=OCR_INSTRUCTION),
            ImageUrlContentPart(image_url=ImageUrl(url=f.data_uri())),
        ))
        chain = await self.vision_sequencer.run(_validated([message]), http_client, request_id=request_id)
        if not chain.succeeded:
            logger.warning(f"RID-{request_id}: OCR failed for '{f.filename}': {chain.result.error_reason}")
            return {"filename": f.filename, "type": "image", "status": "unavailable",
                    "error": "Image analysis temporarily unavailable"}

        return {"filename": f.filename, "type": "image", "status": "success",
                "extracted_text": filter_response(chain.result.content), "provider": chain.result.provider}

    async def _analyse(self, extracted_text: str, query: str, http_client: httpx.AsyncClient, request_id: str) -> str:
        if query:
            prompt = (
                f"User Question: {query}\n\n"
                f"Extracted Content from Files:\n{extracted_text}\n\n"
                "Please analyze this content and provide a comprehensive response to the user's question "
                "based on the extracted text."
            )
        else:
            prompt = (
                f"I've extracted the following text content from the uploaded files:\n\n{extracted_text}\n\n"
                "Please provide a helpful analysis of this content, including:\n"
                "- A summary of what the content contains\n"
                "- Key information or data points found\n"
                "- Any important details that stand out\n"
                "- Suggestions for how this information might be useful"
            )
        messages = [
            ChatMessage(role="system", content=ANALYST_SYSTEM_PROMPT),
            ChatMessage(role="user", content=prompt),
        ]
        chain = await self.analysis_sequencer.run(_validated(messages, action="analysis"), http_client, request_id=request_id)
        if chain.succeeded:
            return filter_response(chain.result.content)
        logger.info(f"RID-{request_id}: OCR analysis chain failed ({chain.result.error_reason}); returning framed text.")
        return _framed_extraction(extracted_text)

    async def process(
        self,
        files: Sequence[UploadedFile],
        query: str,
        http_client: httpx.AsyncClient,
        request_id: str = "-",
    ) -> Dict[str, Any]:
        self.validate_uploads(files)
        query = (query or "").strip()
        log_prefix = f"RID-{request_id}"
        logger.info(f"{log_prefix}: OCR request with {len(files)} file(s), query={'yes' if query else 'no'}")

        analysis_results: List[Dict[str, Any]] = []
        extracted_chunks: List[str] = []
        for f in files:
            if f.is_image:
                entry = await self._extract_image_text(f, http_client, request_id)
                if entry["status"] == "success" and entry["extracted_text"].strip():
                    extracted_chunks.append(f"--- {f.filename} ---\n{entry['extracted_text']}")
                analysis_results.append(entry)
            elif f.is_pdf:
                analysis_results.append({"filename": f.filename, "type": "pdf", "status": "info", "message": PDF_NOTICE})

        extracted_text = "\n\n".join(extracted_chunks).strip()
        has_images = any(f.is_image for f in files)
        has_pdfs = any(f.is_pdf for f in files)

        if extracted_text:
            ai_analysis = await self._analyse(extracted_text, query, http_client, request_id)
        elif has_images:
            ai_analysis = VISION_UNAVAILABLE_REPLY
            if query:
                ai_analysis = f'Your question: "{query}"\n\n{ai_analysis}'
        elif has_pdfs:
            ai_analysis = PDF_ONLY_REPLY
        else:
            ai_analysis = ""

        return {
            "files_processed": len(files),
            "extracted_text": extracted_text,
            "analysis_results": analysis_results,
            "ai_analysis": ai_analysis,
            "has_user_query": bool(query),
            "processing": {
                "images_processed": sum(1 for f in files if f.is_image),
                "pdfs_detected": sum(1 for f in files if f.is_pdf),
                "total_size": sum(f.size for f in files),
            },
        }


def ocr_service_info() -> Dict[str, Any]:
    return {
        "service": "Gawin OCR & Document Analysis",
        "features": [
            "Image OCR (JPEG, PNG, WebP)",
            "PDF detection",
            "Multi-file processing",
            "AI-powered content analysis",
        ],
        "limits": {
            "max_files": OCR_MAX_FILES,
            "max_file_size": f"{OCR_MAX_FILE_SIZE_MB}MB",
            "allowed_types": list(OCR_ALLOWED_MIME_TYPES),
        },
        "status": "operational",
    }
