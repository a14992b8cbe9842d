"""Chatbot training content endpoints: training tasks, uploads, PDF extraction, image analysis."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field

from sienna.core.services import Services


class SaveTaskBody(BaseModel):
    task_id: str | None = None
    title: str | None = None
    description: str | None = None
    tag: str | None = None
    image_url: str | None = None
    pdf_url: str | None = None
    product_id: int | None = None
    training_data: Any = None
    training_status: str | None = None
    content_type: str = "image"


class UpdateTaskBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    tag: str | None = None
    image_url: str | None = None
    product_id: int | None = None
    training_data: Any = None
    training_status: str | None = Field(None, alias="trainingStatus")


class ExtractPdfBody(BaseModel):
    pdf_url: str | None = Field(None, alias="pdfUrl")


class AnalyzeImageBody(BaseModel):
    image_url: str | None = Field(None, alias="imageUrl")
    associated_product: dict | str | None = Field(None, alias="associatedProduct")


def register_routes(router: APIRouter, svc: Services, **kw):
    training = svc.training
    media = svc.media

    @router.get("/training-images")
    def api_list_tasks():
        return {"tasks": training.list()}

    @router.post("/save-training-image")
    def api_save_task(body: SaveTaskBody):
        return {"task": training.create(body.model_dump())}

    @router.get("/training-images/{task_id}")
    def api_get_task(task_id: str):
        return {"task": training.get(task_id)}

    @router.put("/training-images/{task_id}")
    def api_update_task(task_id: str, body: UpdateTaskBody):
        return {"task": training.update(task_id, body.model_dump())}

    @router.delete("/training-images/{task_id}")
    def api_delete_task(task_id: str):
        training.delete(task_id)
        return {"success": True}

    # -- media -----------------------------------------------------------------

    @router.post("/upload")
    def api_upload(file: UploadFile | None = File(None)):
        if file is None:
            raise HTTPException(status_code=400, detail="No file provided")
        data = file.file.read()
        url = media.upload(data, file.filename or "file", file.content_type or "application/octet-stream")
        return {"url": url}

    @router.post("/extract-pdf")
    def api_extract_pdf(body: ExtractPdfBody):
        if not body.pdf_url:
            raise HTTPException(status_code=400, detail="PDF URL is required")
        return media.extract_pdf(body.pdf_url)

    @router.post("/analyze-image")
    def api_analyze_image(body: AnalyzeImageBody):
        if not body.image_url:
            raise HTTPException(status_code=400, detail="Image URL is required")
        return media.analyze_image(body.image_url, body.associated_product)
