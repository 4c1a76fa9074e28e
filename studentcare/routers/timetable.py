from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
from studentcare.config import settings
from studentcare.database import get_db
from studentcare.models import Timetable
from studentcare.services.document_parser import DocumentParser, UNSUPPORTED_FILE_MESSAGE
from studentcare.services.timetable_extraction_service import TimetableExtractionService
from studentcare.services import schedule_service
import asyncio
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

extraction_service = TimetableExtractionService()
document_parser = DocumentParser()


def get_extraction_service() -> TimetableExtractionService:
    return extraction_service


def serialize_timetable(timetable: Timetable) -> Dict[str, Any]:
    return {
        "_id": str(timetable.id),
        "id": timetable.id,
        "studentId": timetable.student_id,
        "metadata": timetable.meta_data or {},
        "structuredData": timetable.structured_data,
        "originalFileUrl": timetable.original_filename,
        "rawExtractedText": timetable.raw_extracted_text,
        "createdAt": timetable.created_at.isoformat() if timetable.created_at else None,
        "updatedAt": timetable.updated_at.isoformat() if timetable.updated_at else None,
    }


def latest_timetable(db: Session, student_id: str) -> Optional[Timetable]:
    return db.query(Timetable).filter(
        Timetable.student_id == student_id
    ).order_by(Timetable.created_at.desc(), Timetable.id.desc()).first()


@router.post("/upload", status_code=201)
async def upload_timetable(
    timetable: Optional[UploadFile] = File(None),
    student_id: Optional[str] = Form(None, alias="studentId"),
    service: TimetableExtractionService = Depends(get_extraction_service),
    db: Session = Depends(get_db)
):
    """Upload a timetable image/PDF and store what the vision model extracts"""
    if timetable is None or not timetable.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    if not student_id or not student_id.strip():
        raise HTTPException(status_code=400, detail="Student ID is required")
    student_id = student_id.strip()

    logger.info(f"Processing file: {timetable.filename} ({timetable.content_type})")
    if not document_parser.is_supported(timetable.filename, timetable.content_type):
        logger.info(f"File rejected - unsupported type: {timetable.content_type}")
        raise HTTPException(status_code=400, detail=UNSUPPORTED_FILE_MESSAGE)

    # One byte past the limit is enough to reject without buffering the whole upload
    file_content = await timetable.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(file_content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
        )
    if not file_content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    mime_type = document_parser.resolve_mime_type(file_content, timetable.filename, timetable.content_type)
    # The model call blocks; keep it off the event loop
    result = await asyncio.to_thread(service.extract_timetable, file_content, mime_type, timetable.filename)

    if not result.success:
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to extract timetable", "details": result.error}
        )

    data = result.data or {}
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    new_timetable = Timetable(
        student_id=student_id,
        meta_data=metadata,
        structured_data=data["schedule"] if "schedule" in data else data,
        original_filename=timetable.filename,
        raw_extracted_text=result.raw_text
    )
    db.add(new_timetable)
    db.commit()
    db.refresh(new_timetable)

    logger.info(f"Timetable {new_timetable.id} saved for student: {student_id}")

    return {
        "message": "Timetable uploaded and processed successfully",
        "timetableId": new_timetable.id,
        "data": serialize_timetable(new_timetable)
    }


@router.get("/student/{student_id}")
async def get_student_timetables(
    student_id: str,
    db: Session = Depends(get_db)
):
    """Get all timetables for a student, newest first"""
    logger.info(f"Fetching timetables for student: {student_id}")

    timetables = db.query(Timetable).filter(
        Timetable.student_id == student_id
    ).order_by(Timetable.created_at.desc(), Timetable.id.desc()).all()

    logger.info(f"Found {len(timetables)} timetables")

    return {
        "success": True,
        "timetables": [serialize_timetable(t) for t in timetables],
        "count": len(timetables)
    }


@router.get("/student/{student_id}/schedule")
async def get_schedule_overview(
    student_id: str,
    db: Session = Depends(get_db)
):
    """Today's classes, the class in progress and the next classes from the newest timetable"""
    timetable = latest_timetable(db, student_id)
    if not timetable:
        raise HTTPException(status_code=404, detail="Timetable not found")

    overview = schedule_service.build_overview(timetable.structured_data)
    overview["timetableId"] = timetable.id
    return overview


@router.get("/{timetable_id}")
async def get_timetable(
    timetable_id: int,
    db: Session = Depends(get_db)
):
    timetable = db.query(Timetable).filter(Timetable.id == timetable_id).first()
    if not timetable:
        raise HTTPException(status_code=404, detail="Timetable not found")

    return {"timetable": serialize_timetable(timetable)}


@router.delete("/{timetable_id}")
async def delete_timetable(
    timetable_id: int,
    db: Session = Depends(get_db)
):
    timetable = db.query(Timetable).filter(Timetable.id == timetable_id).first()
    if not timetable:
        raise HTTPException(status_code=404, detail="Timetable not found")

    db.delete(timetable)
    db.commit()

    return {"message": "Timetable deleted successfully"}
