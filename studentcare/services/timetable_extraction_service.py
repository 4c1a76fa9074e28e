"""
Timetable Extraction Service
Sends an uploaded timetable image/PDF to the vision model and parses its JSON reply.
No local timetable parsing: the model decides the structure.
"""
from typing import Any, Dict, List, Optional
from studentcare.services.openai_service import OpenAIService, LLMError, strip_code_fences
from studentcare.services.document_parser import DocumentParser
from studentcare.schemas.ai_results import ExtractionResult
import base64
import json
import logging

logger = logging.getLogger(__name__)

# Cap the PDF text layer we forward alongside the file
MAX_PDF_TEXT_CHARS = 20000

EXTRACTION_PROMPT = """You are an expert at analyzing and extracting timetable/schedule information from images.

Analyze this timetable and extract ALL information in a structured JSON format. Be intelligent and flexible - understand the format and structure it appropriately.

Return ONLY a valid JSON object with this general structure:
{
  "metadata": {
    "semester": "extract if visible",
    "academicYear": "extract if visible",
    "institutionName": "extract if visible",
    "courseName": "extract if visible",
    "studentName": "extract if visible",
    "section": "extract if visible",
    "any_other_info": "extract any other relevant metadata"
  },
  "schedule": {
    "Monday": [{"time": "9:00-10:00", "subject": "Math", "teacher": "Dr. X", "room": "101"}],
    "Tuesday": [{"time": "9:00-10:00", "subject": "Physics", "teacher": "Dr. Y", "room": "102"}],
    "Wednesday": [],
    "Thursday": [],
    "Friday": [],
    "Saturday": [],
    "Sunday": []
  }
}

Guidelines:
- Extract ALL visible information including: subjects, teachers, rooms, times, days
- Preserve exact names and spellings
- Use time formats like "9:00AM - 10:00AM" or "09:00-10:00"
- If a cell is empty, return empty array for that day
- Include any special notes, lab sessions, tutorial sessions
- Always structure with days of week as keys

Return ONLY the JSON, no markdown formatting, no explanations."""


class TimetableExtractionService:
    """Extract structured timetables from uploaded files using the vision model"""

    def __init__(self, openai_service: Optional[OpenAIService] = None):
        self.openai_service = openai_service or OpenAIService()
        self.document_parser = DocumentParser()

    def build_messages(self, file_content: bytes, mime_type: str, filename: str) -> List[Dict[str, Any]]:
        """Build the multimodal user message for the given file"""
        encoded = base64.b64encode(file_content).decode("utf-8")
        data_url = f"data:{mime_type};base64,{encoded}"
        content: List[Dict[str, Any]] = [{"type": "text", "text": EXTRACTION_PROMPT}]

        if mime_type == "application/pdf":
            content.append({
                "type": "file",
                "file": {"filename": filename or "timetable.pdf", "file_data": data_url},
            })
            pdf_text = self.document_parser.extract_text_from_pdf(file_content)
            if pdf_text:
                content.append({
                    "type": "text",
                    "text": f"Text layer of the PDF (may be incomplete):\n{pdf_text[:MAX_PDF_TEXT_CHARS]}",
                })
        else:
            content.append({"type": "image_url", "image_url": {"url": data_url}})

        return [{"role": "user", "content": content}]

    def extract_timetable(self, file_content: bytes, mime_type: str, filename: str = "") -> ExtractionResult:
        """
        Extract a timetable from an image or PDF.

        Returns:
            ExtractionResult with success=True and the parsed JSON in `data`, or
            success=False and an error message. Errors are never raised.
        """
        logger.info(f"Extracting timetable from {filename or 'upload'} ({mime_type}, {len(file_content)} bytes)")
        try:
            if not self.openai_service.is_configured:
                raise LLMError("OPENAI_API_KEY is not configured")

            messages = self.build_messages(file_content, mime_type, filename)
            text = self.openai_service.complete_text(
                messages,
                model=self.openai_service.vision_model,
                temperature=0.2,
                max_tokens=4000
            )
            logger.info("Vision model response received - parsing data")

            text = strip_code_fences(text)
            parsed = json.loads(text)
            if not isinstance(parsed, dict):
                raise ValueError("Expected a JSON object describing the timetable")

            logger.info("Timetable data parsed successfully")
            return ExtractionResult(success=True, data=parsed, raw_text=text)
        except Exception as e:
            logger.error(f"Timetable extraction failed: {type(e).__name__}: {e}")
            return ExtractionResult(
                success=False,
                error=str(e) or "Unknown error occurred during timetable extraction"
            )
