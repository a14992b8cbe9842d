"""Chatbot training content: tasks built from images and PDFs, plus the media helpers behind them.

A training task pairs an uploaded image or PDF with question/answer pairs
used for in-context training. Media files live in the object store; text is
pulled from PDFs locally and from images by the configured LLM.
"""

from __future__ import annotations

import json
import logging
import re
import time
import urllib.error
import urllib.request
import uuid

from psycopg.types.json import Jsonb

from sienna.core.utils import IntegrationError, NotFoundError, ValidationError
from sienna.integrations.interface import ObjectStore
from sienna.integrations.pdf import extract_pdf_text
from sienna.llm.interface import LLMInterface
from sienna.storage.database import Database

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 60
MAX_FETCH_BYTES = 25 * 1024 * 1024
PDF_PROMPT = "Provide information from the uploaded document"
PDF_EMPTY = "No text extracted from PDF"

TASK_COLUMNS = (
    "task_id", "title", "description", "tag", "image_url", "pdf_url",
    "product_id", "training_data", "training_status", "content_type",
)

_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9.-]")
_JSON_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")

IMAGE_PROMPT = """\
You extract structured, chatbot-trainable information from a product image
for Sienna Naturals hair care. Work only from text and details visible in
the image. Do not invent facts and do not add questions about anything the
image does not show. When an associated product is given, use its name and
details to align the wording, without changing the information in the image.

Return one JSON object with exactly these keys:
  "productName": the product shown, or null when none is identifiable
  "description": a single string summarising what the image says
  "trainingPairs": an array of {{"question": ..., "answer": ...}} objects

Associated product: {product}
"""


def safe_filename(name: str, now_ms: int | None = None) -> str:
    """``{epoch_ms}-{name}`` with every character outside [a-zA-Z0-9.-] replaced by '-'."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{stamp}-{_UNSAFE_FILENAME.sub('-', name or 'file')}"


def fetch_bytes(url: str) -> tuple[bytes, str]:
    """GET a URL; return (body, content type)."""
    if not url.startswith(("http://", "https://")):
        raise ValidationError(f"Unsupported URL: {url}")
    req = urllib.request.Request(url, headers={"User-Agent": "sienna-dash"})
    try:
        with urllib.request.urlopen(req, timeout=FETCH_TIMEOUT) as resp:
            data = resp.read(MAX_FETCH_BYTES + 1)
            content_type = resp.headers.get_content_type()
    except urllib.error.HTTPError as e:
        raise IntegrationError(f"Fetching {url} returned {e.code}", status=e.code) from e
    except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
        raise IntegrationError(f"Fetching {url} failed: {e}") from e
    if len(data) > MAX_FETCH_BYTES:
        raise ValidationError(f"File at {url} exceeds {MAX_FETCH_BYTES} bytes")
    return data, content_type


def parse_analysis(raw: str, fallback_name: str | None = None) -> dict:
    """Normalise the model's JSON into {productName, description, trainingPairs}."""
    try:
        data = json.loads(_JSON_FENCE.sub("", raw.strip()))
    except json.JSONDecodeError:
        logger.warning("Image analysis returned non-JSON output: %.200s", raw)
        return {"productName": fallback_name, "description": "", "trainingPairs": []}
    if not isinstance(data, dict):
        data = {}

    description = data.get("description") or ""
    if isinstance(description, list):
        description = "\n".join(str(d) for d in description)

    pairs = data.get("trainingPairs")
    if pairs is None and isinstance(data.get("trainingData"), str):
        pairs = []
        for line in data["trainingData"].splitlines():
            if line.strip():
                try:
                    pairs.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
    pairs = [
        {"question": str(p.get("question", "")), "answer": str(p.get("answer", ""))}
        for p in (pairs or []) if isinstance(p, dict)
    ]
    return {
        "productName": data.get("productName") or fallback_name,
        "description": str(description),
        "trainingPairs": pairs,
    }


def _camel(row: dict) -> dict:
    return {
        "taskId": row["task_id"],
        "title": row.get("title"),
        "description": row.get("description"),
        "tag": row.get("tag"),
        "contentType": row.get("content_type"),
        "imageUrl": row.get("image_url"),
        "pdfUrl": row.get("pdf_url"),
        "productId": row.get("product_id"),
        "trainingData": row.get("training_data"),
        "trainingStatus": row.get("training_status"),
        "createdAt": row.get("created_at"),
        "updatedAt": row.get("updated_at"),
    }


class TrainingTasks:
    def __init__(self, db: Database):
        self.db = db

    def list(self) -> list[dict]:
        rows = self.db.execute("SELECT * FROM training_images ORDER BY created_at DESC")
        return [_camel(r) for r in rows]

    def get(self, task_id: str) -> dict:
        row = self.db.execute_one(
            """SELECT ti.*, p.product_name
               FROM training_images ti
               LEFT JOIN products p ON ti.product_id = p.product_id
               WHERE ti.task_id = %s""",
            (task_id,),
        )
        if not row:
            raise NotFoundError("Task not found")
        return row

    def create(self, fields: dict) -> dict:
        values = dict(fields)
        values["task_id"] = values.get("task_id") or uuid.uuid4().hex
        values["content_type"] = values.get("content_type") or "image"
        values["training_status"] = values.get("training_status") or "pending"
        if values.get("training_data") is not None:
            values["training_data"] = Jsonb(values["training_data"])
        row = self.db.execute_one(
            f"""INSERT INTO training_images ({", ".join(TASK_COLUMNS)})
                VALUES ({", ".join(["%s"] * len(TASK_COLUMNS))})
                RETURNING *""",
            tuple(values.get(c) for c in TASK_COLUMNS),
        )
        self.db.commit()
        logger.info("Saved training task %s (%s)", row["task_id"], row["content_type"])
        return row

    def update(self, task_id: str, fields: dict) -> dict:
        training_data = fields.get("training_data")
        row = self.db.execute_one(
            """UPDATE training_images
               SET title = %s, description = %s, tag = %s, image_url = %s,
                   product_id = %s, training_data = %s, training_status = COALESCE(%s, training_status),
                   updated_at = NOW()
               WHERE task_id = %s
               RETURNING *""",
            (
                fields.get("title"), fields.get("description"), fields.get("tag"),
                fields.get("image_url"), fields.get("product_id"),
                Jsonb(training_data) if training_data is not None else None,
                fields.get("training_status"), task_id,
            ),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Task not found")
        self.db.commit()
        return row

    def delete(self, task_id: str) -> None:
        row = self.db.execute_one(
            "DELETE FROM training_images WHERE task_id = %s RETURNING task_id", (task_id,),
        )
        if not row:
            self.db.rollback()
            raise NotFoundError("Task not found")
        self.db.commit()


class MediaProcessor:
    """Upload, PDF extraction and image analysis for training content.

    ``store`` and ``llm`` are None when not configured; the matching
    operations then fail with IntegrationError.
    """

    def __init__(self, store: ObjectStore | None, llm: LLMInterface | None):
        self.store = store
        self.llm = llm

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        if not data:
            raise ValidationError("No file provided")
        if self.store is None:
            raise IntegrationError("Object storage is not configured")
        return self.store.upload(data, safe_filename(filename), content_type)

    def extract_pdf(self, pdf_url: str) -> dict:
        data, _ = fetch_bytes(pdf_url)
        text = extract_pdf_text(data)
        training = {
            "messages": [
                {"role": "user", "content": PDF_PROMPT},
                {"role": "assistant", "content": text or PDF_EMPTY},
            ],
        }
        return {"extractedText": text, "trainingData": json.dumps(training, indent=2)}

    def analyze_image(self, image_url: str, associated_product: dict | str | None = None) -> dict:
        if self.llm is None:
            raise IntegrationError("No LLM backend is configured")
        if isinstance(associated_product, str):
            try:
                associated_product = json.loads(associated_product)
            except json.JSONDecodeError:
                associated_product = {"name": associated_product}
        product_name = None
        if isinstance(associated_product, dict):
            product_name = associated_product.get("name") or associated_product.get("product_name")

        image, mime_type = fetch_bytes(image_url)
        if not mime_type.startswith("image/"):
            mime_type = "image/jpeg"
        prompt = IMAGE_PROMPT.format(
            product=json.dumps(associated_product) if associated_product else "none",
        )
        try:
            raw = self.llm.describe_image(prompt, image, mime_type)
        except (urllib.error.URLError, TimeoutError, ConnectionError, ValueError) as e:
            raise IntegrationError(f"Image analysis failed: {e}") from e
        return parse_analysis(raw, fallback_name=product_name)
