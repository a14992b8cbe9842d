"""Tests for sienna.core.training: tasks, uploads, PDF extraction and image analysis."""

import io
import json
import urllib.error
import urllib.request

import pytest
from psycopg.types.json import Jsonb

from sienna.core import training
from sienna.core.training import (
    PDF_EMPTY, PDF_PROMPT, MediaProcessor, TrainingTasks, fetch_bytes, parse_analysis, safe_filename,
)
from sienna.core.utils import IntegrationError, NotFoundError, ValidationError
from helpers import ExplodingLLM, FakeDatabase, InMemoryStore, MockLLM


class _Headers:
    def __init__(self, content_type):
        self._content_type = content_type

    def get_content_type(self):
        return self._content_type


class _Response:
    def __init__(self, body, content_type="application/pdf"):
        self._body = io.BytesIO(body)
        self.headers = _Headers(content_type)

    def read(self, n=-1):
        return self._body.read(n)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TestSafeFilename:
    def test_replaces_unsafe_characters(self):
        assert safe_filename("my photo (1).png", now_ms=1700) == "1700-my-photo--1-.png"

    def test_keeps_dots_and_dashes(self):
        assert safe_filename("a-b.c.pdf", now_ms=1) == "1-a-b.c.pdf"

    def test_timestamp_prefix(self):
        stamp, _, rest = safe_filename("x.png").partition("-")
        assert stamp.isdigit()
        assert rest == "x.png"


class TestFetchBytes:
    def test_returns_body_and_type(self, monkeypatch):
        monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout: _Response(b"%PDF", "application/pdf"))
        assert fetch_bytes("https://cdn.test/a.pdf") == (b"%PDF", "application/pdf")

    def test_rejects_non_http(self):
        with pytest.raises(ValidationError):
            fetch_bytes("file:///etc/passwd")

    def test_http_error_keeps_status(self, monkeypatch):
        def fail(req, timeout):
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", None, io.BytesIO(b""))

        monkeypatch.setattr(urllib.request, "urlopen", fail)
        with pytest.raises(IntegrationError) as exc:
            fetch_bytes("https://cdn.test/missing.pdf")
        assert exc.value.status == 404

    def test_connection_error(self, monkeypatch):
        def fail(req, timeout):
            raise urllib.error.URLError("no route to host")

        monkeypatch.setattr(urllib.request, "urlopen", fail)
        with pytest.raises(IntegrationError):
            fetch_bytes("https://cdn.test/a.pdf")

    def test_oversize_body(self, monkeypatch):
        monkeypatch.setattr(training, "MAX_FETCH_BYTES", 4)
        monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout: _Response(b"0123456789"))
        with pytest.raises(ValidationError):
            fetch_bytes("https://cdn.test/big.pdf")


class TestParseAnalysis:
    def test_plain_json(self):
        raw = json.dumps({
            "productName": "Curl Cream",
            "description": "Defines curls",
            "trainingPairs": [{"question": "What is it?", "answer": "A cream"}],
        })
        assert parse_analysis(raw) == {
            "productName": "Curl Cream",
            "description": "Defines curls",
            "trainingPairs": [{"question": "What is it?", "answer": "A cream"}],
        }

    def test_fenced_json(self):
        raw = '```json\n{"productName": "Leave-In", "description": "x", "trainingPairs": []}\n```'
        assert parse_analysis(raw)["productName"] == "Leave-In"

    def test_description_list_is_joined(self):
        raw = json.dumps({"description": ["Line one", "Line two"]})
        assert parse_analysis(raw)["description"] == "Line one\nLine two"

    def test_line_delimited_training_data(self):
        raw = json.dumps({
            "trainingData": '{"question": "q1", "answer": "a1"}\nnot json\n{"question": "q2", "answer": "a2"}',
        })
        assert parse_analysis(raw)["trainingPairs"] == [
            {"question": "q1", "answer": "a1"}, {"question": "q2", "answer": "a2"},
        ]

    def test_non_json_falls_back(self):
        assert parse_analysis("I cannot read this image.", fallback_name="Curl Cream") == {
            "productName": "Curl Cream", "description": "", "trainingPairs": [],
        }

    def test_null_product_uses_fallback_name(self):
        raw = json.dumps({"productName": None, "description": "", "trainingPairs": []})
        assert parse_analysis(raw, fallback_name="Mask")["productName"] == "Mask"


TASK = {"task_id": "t1", "title": "Mask", "content_type": "image", "training_status": "pending"}


class TestTrainingTasks:
    def test_list_is_camel_case(self):
        db = FakeDatabase([("FROM training_images", [{**TASK, "image_url": "https://cdn.test/a.png"}])])
        task = TrainingTasks(db).list()[0]
        assert task["taskId"] == "t1"
        assert task["imageUrl"] == "https://cdn.test/a.png"
        assert task["trainingStatus"] == "pending"
        assert "task_id" not in task

    def test_get_joins_product(self):
        db = FakeDatabase([("LEFT JOIN products p", [{**TASK, "product_name": "Mask"}])])
        assert TrainingTasks(db).get("t1")["product_name"] == "Mask"

    def test_get_missing(self):
        with pytest.raises(NotFoundError):
            TrainingTasks(FakeDatabase()).get("nope")

    def test_create_defaults(self):
        db = FakeDatabase([("INSERT INTO training_images", [TASK])])
        TrainingTasks(db).create({"title": "Mask", "training_data": {"pairs": []}})
        _, params = db.queries("INSERT INTO training_images")[0]
        values = dict(zip(training.TASK_COLUMNS, params))
        assert len(values["task_id"]) == 32
        assert values["content_type"] == "image"
        assert values["training_status"] == "pending"
        assert isinstance(values["training_data"], Jsonb)
        assert db.commits == 1

    def test_create_keeps_given_id(self):
        db = FakeDatabase([("INSERT INTO training_images", [TASK])])
        TrainingTasks(db).create({"task_id": "t1", "content_type": "pdf"})
        _, params = db.queries("INSERT INTO training_images")[0]
        assert params[0] == "t1"
        assert params[training.TASK_COLUMNS.index("content_type")] == "pdf"

    def test_update_writes_status(self):
        db = FakeDatabase([("UPDATE training_images", [{**TASK, "training_status": "completed"}])])
        row = TrainingTasks(db).update("t1", {"title": "Mask", "training_status": "completed"})
        assert row["training_status"] == "completed"
        _, params = db.queries("UPDATE training_images")[0]
        assert params[-2:] == ("completed", "t1")
        assert db.commits == 1

    def test_update_missing(self):
        db = FakeDatabase()
        with pytest.raises(NotFoundError):
            TrainingTasks(db).update("nope", {"title": "x"})
        assert db.rollbacks == 1

    def test_delete(self):
        db = FakeDatabase([("DELETE FROM training_images", [{"task_id": "t1"}])])
        TrainingTasks(db).delete("t1")
        assert db.commits == 1

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            TrainingTasks(FakeDatabase()).delete("nope")


class TestUpload:
    def test_stores_under_safe_name(self):
        store = InMemoryStore()
        url = MediaProcessor(store, None).upload(b"png", "my photo.png", "image/png")
        assert url.startswith("https://cdn.test/uploads/")
        assert url.endswith("-my-photo.png")
        [(data, content_type)] = store.objects.values()
        assert (data, content_type) == (b"png", "image/png")

    def test_empty_file(self):
        with pytest.raises(ValidationError):
            MediaProcessor(InMemoryStore(), None).upload(b"", "a.png", "image/png")

    def test_store_not_configured(self):
        with pytest.raises(IntegrationError):
            MediaProcessor(None, None).upload(b"x", "a.png", "image/png")


class TestExtractPdf:
    def test_training_messages(self, monkeypatch):
        monkeypatch.setattr(training, "fetch_bytes", lambda url: (b"%PDF", "application/pdf"))
        monkeypatch.setattr(training, "extract_pdf_text", lambda data: "Use on damp hair.")
        result = MediaProcessor(None, None).extract_pdf("https://cdn.test/guide.pdf")
        assert result["extractedText"] == "Use on damp hair."
        messages = json.loads(result["trainingData"])["messages"]
        assert messages == [
            {"role": "user", "content": PDF_PROMPT},
            {"role": "assistant", "content": "Use on damp hair."},
        ]

    def test_empty_pdf(self, monkeypatch):
        monkeypatch.setattr(training, "fetch_bytes", lambda url: (b"%PDF", "application/pdf"))
        monkeypatch.setattr(training, "extract_pdf_text", lambda data: "")
        result = MediaProcessor(None, None).extract_pdf("https://cdn.test/blank.pdf")
        assert json.loads(result["trainingData"])["messages"][1]["content"] == PDF_EMPTY


class TestAnalyzeImage:
    ANSWER = json.dumps({
        "productName": "Curl Cream",
        "description": "Defines curls",
        "trainingPairs": [{"question": "Who is it for?", "answer": "Type 3 and 4 hair"}],
    })

    def _fetch(self, monkeypatch, content_type="image/png"):
        monkeypatch.setattr(training, "fetch_bytes", lambda url: (b"img", content_type))

    def test_analysis(self, monkeypatch):
        self._fetch(monkeypatch)
        llm = MockLLM(self.ANSWER)
        result = MediaProcessor(None, llm).analyze_image("https://cdn.test/a.png", {"name": "Curl Cream"})
        assert result["productName"] == "Curl Cream"
        assert result["trainingPairs"] == [{"question": "Who is it for?", "answer": "Type 3 and 4 hair"}]
        prompt, image, mime_type = llm.image_calls[0]
        assert '"name": "Curl Cream"' in prompt
        assert (image, mime_type) == (b"img", "image/png")

    def test_non_image_type_is_sent_as_jpeg(self, monkeypatch):
        self._fetch(monkeypatch, "application/octet-stream")
        llm = MockLLM(self.ANSWER)
        MediaProcessor(None, llm).analyze_image("https://cdn.test/a")
        assert llm.image_calls[0][2] == "image/jpeg"

    def test_product_given_as_plain_string(self, monkeypatch):
        self._fetch(monkeypatch)
        result = MediaProcessor(None, MockLLM("not json")).analyze_image(
            "https://cdn.test/a.png", "Leave-In Conditioner",
        )
        assert result == {"productName": "Leave-In Conditioner", "description": "", "trainingPairs": []}

    def test_product_given_as_json_string(self, monkeypatch):
        self._fetch(monkeypatch)
        llm = MockLLM("{}")
        result = MediaProcessor(None, llm).analyze_image(
            "https://cdn.test/a.png", json.dumps({"product_name": "Mask"}),
        )
        assert result["productName"] == "Mask"

    def test_llm_failure(self, monkeypatch):
        self._fetch(monkeypatch)
        with pytest.raises(IntegrationError):
            MediaProcessor(None, ExplodingLLM()).analyze_image("https://cdn.test/a.png")

    def test_llm_not_configured(self):
        with pytest.raises(IntegrationError):
            MediaProcessor(None, None).analyze_image("https://cdn.test/a.png")
