"""Shared test helpers for Sienna tests."""

import re
import threading

import psycopg

from sienna.integrations.interface import IdentityProvider, ObjectStore
from sienna.llm.interface import LLMInterface
from sienna.core.utils import IntegrationError


def _normalize(query: str) -> str:
    return re.sub(r"\s+", " ", query).strip()


class FakeDatabase:
    """Answers queries from canned rows, matched by SQL fragment.

    ``routes`` is a list of (fragment, answer) pairs checked in order against
    the whitespace-normalized query; put specific fragments before general
    ones. An answer is a list of row dicts, a callable taking ``params``, or
    an exception instance to raise. Unmatched queries return no rows.
    """

    def __init__(self, routes=None):
        self.routes = [(_normalize(f), a) for f, a in (routes or [])]
        self.calls = []
        self.commits = 0
        self.rollbacks = 0
        self.releases = 0
        self.closed = False
        self._lock = threading.Lock()

    def _answer(self, query, params):
        q = _normalize(query)
        with self._lock:
            self.calls.append((q, params))
        for fragment, answer in self.routes:
            if fragment in q:
                if isinstance(answer, Exception):
                    raise answer
                if callable(answer):
                    return answer(params)
                return answer
        return []

    def execute(self, query, params=None):
        return list(self._answer(query, params))

    def execute_one(self, query, params=None):
        result = self._answer(query, params)
        return result[0] if result else None

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def release_if_held(self):
        with self._lock:
            self.releases += 1

    def close(self):
        self.closed = True

    def queries(self, fragment: str) -> list:
        fragment = _normalize(fragment)
        return [(q, p) for q, p in self.calls if fragment in q]

    def pool_stats(self):
        return {"total_connections": 4, "idle_connections": 3, "waiting_requests": 0}

    def health(self):
        return {"healthy": True, "response_time_ms": 2, "error": None}


class ExplodingDatabase(FakeDatabase):
    """Every query fails as if the server were unreachable."""

    def _answer(self, query, params):
        with self._lock:
            self.calls.append((_normalize(query), params))
        raise psycopg.OperationalError("connection refused")

    def pool_stats(self):
        return {"total_connections": 0, "idle_connections": 0, "waiting_requests": 0}

    def health(self):
        return {"healthy": False, "response_time_ms": 5000, "error": "connection refused"}


def count_row(n):
    return [{"count": n}]


class MockLLM(LLMInterface):
    """Returns a canned response for testing."""

    def __init__(self, response: str = ""):
        self._response = response
        self.image_calls = []

    def describe_image(self, prompt: str, image: bytes, mime_type: str, max_tokens: int = 2048) -> str:
        self.image_calls.append((prompt, image, mime_type))
        return self._response

    def get_model_name(self) -> str:
        return "mock"


class ExplodingLLM(LLMInterface):
    """Always raises an exception."""

    def describe_image(self, prompt: str, image: bytes, mime_type: str, max_tokens: int = 2048) -> str:
        raise ConnectionError("LLM is down")

    def get_model_name(self) -> str:
        return "exploding"


class InMemoryStore(ObjectStore):
    """Keeps uploads in a dict keyed by filename."""

    def __init__(self, base_url: str = "https://cdn.test/uploads"):
        self.base_url = base_url
        self.objects = {}

    def upload(self, data: bytes, filename: str, content_type: str) -> str:
        self.objects[filename] = (data, content_type)
        return f"{self.base_url}/{filename}"

    def delete(self, url: str) -> None:
        self.objects.pop(url.rsplit("/", 1)[-1], None)


def clerk_user(user_id="user_1", email="ada@example.com", first="Ada", last="Lovelace", **extra):
    user = {
        "id": user_id,
        "email_addresses": [{"email_address": email}] if email else [],
        "first_name": first,
        "last_name": last,
        "image_url": f"https://img.test/{user_id}.png",
        "public_metadata": {"role": "admin"},
        "banned": False,
        "locked": False,
        "created_at": 1700000000000,
        "last_sign_in_at": 1700000500000,
        "username": None,
    }
    user.update(extra)
    return user


class FakeIdentity(IdentityProvider):
    """In-memory identity provider holding raw provider user objects."""

    def __init__(self, users=None):
        self.users = {u["id"]: dict(u) for u in (users or [])}
        self.invitations = []
        self.updates = []
        self.existing_emails = set()

    def _missing(self, user_id):
        return IntegrationError(
            f"user {user_id} not found", status=404,
            body={"errors": [{"code": "resource_not_found"}]},
        )

    def list_users(self, limit: int = 100):
        return list(self.users.values())[:limit]

    def get_user(self, user_id: str):
        if user_id not in self.users:
            raise self._missing(user_id)
        return dict(self.users[user_id])

    def create_user(self, email, first_name="", last_name="", public_metadata=None):
        if email in self.existing_emails:
            raise IntegrationError(
                "Clerk POST /users returned 422", status=422,
                body={"errors": [{"code": "form_identifier_exists"}]},
            )
        user = clerk_user(
            user_id=f"user_{len(self.users) + 1}", email=email, first=first_name, last=last_name,
            public_metadata=public_metadata or {},
        )
        self.users[user["id"]] = user
        return dict(user)

    def update_user(self, user_id, fields):
        if user_id not in self.users:
            raise self._missing(user_id)
        self.updates.append((user_id, fields))
        self.users[user_id].update(fields)
        return dict(self.users[user_id])

    def delete_user(self, user_id):
        if user_id not in self.users:
            raise self._missing(user_id)
        del self.users[user_id]

    def ban_user(self, user_id):
        self.users[user_id]["banned"] = True

    def unban_user(self, user_id):
        self.users[user_id]["banned"] = False

    def create_invitation(self, email, public_metadata=None):
        self.invitations.append((email, public_metadata))
        return {"id": f"inv_{len(self.invitations)}", "email_address": email}
