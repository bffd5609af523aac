from __future__ import annotations

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

from finance_tracker import handlers
from finance_tracker.auth import extract_bearer, verify_token
from finance_tracker.errors import NotAuthorizedError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024


def _json_response(handler: BaseHTTPRequestHandler, payload: Any, status: int = 200) -> None:
    body = json.dumps(payload).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Cache-Control", "no-store")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _get_param(query: dict[str, list[str]], key: str) -> str | None:
    values = query.get(key)
    return values[0] if values else None


class FinanceTrackerHandler(BaseHTTPRequestHandler):
    db_path = "finance.db"
    jwt_secret = ""

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self) -> None:
        self._dispatch("GET")

    def do_POST(self) -> None:
        self._dispatch("POST")

    def do_PUT(self) -> None:
        self._dispatch("PUT")

    def do_DELETE(self) -> None:
        self._dispatch("DELETE")

    def _dispatch(self, method: str) -> None:
        parsed = urlparse(self.path)
        parts = [p for p in parsed.path.split("/") if p]
        self._drain_body()
        if parts == ["api", "health"] and method == "GET":
            _json_response(self, {"status": "ok"})
            return
        try:
            owner = verify_token(extract_bearer(self.headers.get("Authorization")), self.jwt_secret)
            status, payload = self._route(method, parts, parse_qs(parsed.query), owner)
        except ValidationError as exc:
            _json_response(self, {"message": str(exc)}, status=400)
            return
        except NotAuthorizedError as exc:
            _json_response(self, {"message": str(exc)}, status=401)
            return
        except NotFoundError as exc:
            _json_response(self, {"message": str(exc)}, status=404)
            return
        except Exception:
            logger.exception("Unhandled error for %s %s", method, parsed.path)
            _json_response(self, {"message": "Server error"}, status=500)
            return
        _json_response(self, payload, status=status)

    def _route(self, method: str, parts: list[str], query: dict[str, list[str]], owner: str):
        if len(parts) < 2 or parts[0] != "api":
            raise NotFoundError("Route not found")

        if parts[1:] == ["reports"] and method == "GET":
            return 200, handlers.report(
                self.db_path,
                owner,
                range_name=_get_param(query, "range"),
                category=_get_param(query, "category"),
            )

        resource = handlers.RESOURCES.get(parts[1])
        if resource is None:
            raise NotFoundError("Route not found")
        rest = parts[2:]

        if not rest:
            if method == "GET":
                return 200, handlers.list_records(self.db_path, resource, owner)
            if method == "POST":
                return 201, handlers.create_record(self.db_path, resource, owner, self._read_json())
        elif rest == ["stats"] and method == "GET":
            if resource is handlers.TRANSACTIONS:
                return 200, handlers.transaction_stats(
                    self.db_path,
                    owner,
                    start=_get_param(query, "startDate"),
                    end=_get_param(query, "endDate"),
                )
            return 200, handlers.STATS_HANDLERS[resource.path](self.db_path, owner)
        elif len(rest) == 1:
            record_id = rest[0]
            if method == "GET":
                return 200, handlers.get_record(self.db_path, resource, owner, record_id)
            if method == "PUT":
                return 200, handlers.update_record(
                    self.db_path, resource, owner, record_id, self._read_json()
                )
            if method == "DELETE":
                return 200, handlers.delete_record(self.db_path, resource, owner, record_id)
        elif len(rest) == 2 and rest[1] == "add-amount" and method == "PUT":
            if resource is handlers.SAVINGS_GOALS:
                return 200, handlers.add_amount_to_goal(self.db_path, owner, rest[0], self._read_json())

        raise NotFoundError("Route not found")

    def _drain_body(self) -> None:
        # The body is consumed before any reply is sent.
        self._body: bytes | None = b""
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if length > MAX_BODY_BYTES:
            self._body = None
            self.close_connection = True
        elif length > 0:
            self._body = self.rfile.read(length)

    def _read_json(self) -> Any:
        if self._body is None:
            raise ValidationError("Request body too large")
        if not self._body.strip():
            return None
        try:
            return json.loads(self._body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationError("Request body must be valid JSON") from exc


def create_server(db_path: str, jwt_secret: str, host: str = "127.0.0.1", port: int = 5001) -> ThreadingHTTPServer:
    handler = type(
        "FinanceTrackerHandler",
        (FinanceTrackerHandler,),
        {"db_path": db_path, "jwt_secret": jwt_secret},
    )
    return ThreadingHTTPServer((host, port), handler)
