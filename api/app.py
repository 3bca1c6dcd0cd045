"""Flask REST API exposing the EV ledger services."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from evledger.auth import CredentialStore
from evledger.config import Settings
from evledger.exceptions import (
    AuthenticationError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from evledger.gateway import StorageGateway
from evledger.logging_config import setup_logging
from evledger.session import LedgerSession
from evledger.storage import JSONStorage


def create_app(data_dir: Optional[Path] = None, settings: Optional[Settings] = None) -> Flask:
    app = Flask(__name__)

    settings = settings or Settings.from_env()
    if data_dir is not None:
        settings.data_dir = Path(data_dir)
    setup_logging(settings.log_level)

    if settings.is_dev:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif settings.allowed_origins:
        CORS(app, resources={r"/*": {"origins": settings.allowed_origins}}, supports_credentials=True)
    else:
        CORS(app)

    gateway = StorageGateway(
        JSONStorage(settings.data_dir),
        load_latency=settings.load_latency,
        save_latency=settings.save_latency,
    )
    credentials = CredentialStore(gateway)
    calendar = settings.build_calendar()

    def _success(payload: Any, status: int = 200, session: Optional[LedgerSession] = None):
        if status == 204:
            return ("", status)
        if session is not None and session.error:
            # Storage problems are non-fatal; the in-memory result still stands.
            payload = {**payload, "warning": session.error}
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(exc: AuthenticationError):
        response, status = _handle_error(exc, 401, "Authentication failed")
        response.headers["WWW-Authenticate"] = 'Basic realm="ev-ledger"'
        return response, status

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _int_arg(name: str) -> Optional[int]:
        raw = request.args.get(name)
        if raw in (None, ""):
            return None
        try:
            return int(raw)
        except ValueError as exc:
            raise ValidationError(f"{name} must be an integer") from exc

    async def _open_session() -> LedgerSession:
        auth = request.authorization
        if auth is None or not auth.username:
            raise AuthenticationError("Authentication required")
        username = await credentials.login(auth.username, auth.password)
        return await LedgerSession(gateway, calendar, username).open()

    async def _writable_session() -> LedgerSession:
        session = await _open_session()
        # No writes after a failed load.
        session.ensure_writable()
        return session

    @app.post("/auth/register")
    async def register():
        payload = _json_body()
        username = await credentials.register(
            payload.get("username"), payload.get("password"), payload.get("confirm_password")
        )
        return _success({"username": username}, 201)

    @app.post("/auth/login")
    async def login():
        payload = _json_body()
        username = await credentials.login(payload.get("username"), payload.get("password"))
        return _success({"username": username})

    @app.get("/transactions")
    async def list_transactions():
        session = await _open_session()
        view = session.dashboard()
        return _success({"items": [tx.to_dict() for tx in view.transactions]}, session=session)

    @app.post("/transactions")
    async def create_transaction():
        session = await _writable_session()
        transaction = session.transactions.add(_json_body())
        await session.flush()
        return _success(transaction.to_dict(), 201, session=session)

    @app.get("/transactions/<transaction_id>")
    async def get_transaction(transaction_id: str):
        session = await _open_session()
        return _success(session.transactions.get(transaction_id).to_dict(), session=session)

    @app.put("/transactions/<transaction_id>")
    async def update_transaction(transaction_id: str):
        session = await _writable_session()
        transaction = session.transactions.update(transaction_id, _json_body())
        await session.flush()
        return _success(transaction.to_dict(), session=session)

    @app.delete("/transactions/<transaction_id>")
    async def delete_transaction(transaction_id: str):
        session = await _writable_session()
        session.transactions.delete(transaction_id)
        await session.flush()
        return _success({}, 204)

    @app.get("/dashboard")
    async def dashboard():
        session = await _open_session()
        return _success(session.dashboard().to_dict(), session=session)

    @app.get("/reports/monthly")
    async def monthly_report():
        session = await _open_session()
        report = session.monthly_report(_int_arg("month"), _int_arg("year"))
        return _success(report.to_dict(), session=session)

    @app.get("/service-records")
    async def list_service_records():
        session = await _open_session()
        return _success({"items": session.service_history()}, session=session)

    @app.post("/service-records")
    async def create_service_record():
        session = await _writable_session()
        record = session.service_records.add(_json_body())
        await session.flush()
        return _success(record.to_dict(), 201, session=session)

    return app
