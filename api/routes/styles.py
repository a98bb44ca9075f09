"""API routes for applying excelStyles rules to exported workbooks.

- Upload XLSX + options JSON -> styled XLSX
- List the built-in style templates
"""
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from services.excel_styles import (
    ExcelStylesError,
    XlsxPackage,
    apply_excel_styles,
    list_templates,
)
from services.styles_config import get_style_settings


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/styles", tags=["styles"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/apply")
async def apply_styles_to_upload(
    file: UploadFile = File(...),
    options: str = Form("{}"),
):
    """Apply insertCells, excelStyles and pageStyle rules to an uploaded XLSX.

    ``options`` is the JSON options envelope: ``layout``, ``excelStyles``,
    ``pageStyle`` and ``insertCells``. Rules that do not validate or whose
    cell references do not resolve are skipped.
    """
    if not file.filename:
        raise HTTPException(400, "No filename provided")

    if not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")

    content = await file.read()
    settings = get_style_settings()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(413, f"File exceeds {settings.max_upload_mb:g} MB")

    try:
        parsed_options = json.loads(options or "{}")
    except json.JSONDecodeError as e:
        raise HTTPException(400, f"Options are not valid JSON: {e}")
    if not isinstance(parsed_options, dict):
        raise HTTPException(400, "Options must be a JSON object")

    try:
        package = XlsxPackage.from_bytes(content)
        apply_excel_styles(package, parsed_options)
        styled = package.to_bytes()
    except ExcelStylesError as e:
        logger.warning(f"[STYLES] Rejected {file.filename}: {e}")
        raise HTTPException(400, str(e))

    logger.info(f"[STYLES] Styled {file.filename} ({len(content)} -> {len(styled)} bytes)")
    stem = file.filename[: -len(".xlsx")]
    return Response(
        content=styled,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{stem}_styled.xlsx"'},
    )


@router.get("/templates")
async def get_templates():
    """Names and descriptions of the built-in style templates."""
    return {"templates": list_templates()}
