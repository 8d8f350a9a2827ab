import hmac
import json
import logging

from pydantic import ValidationError
from quart import Quart, jsonify, request
from quart_cors import cors
from werkzeug.exceptions import HTTPException

from ytsummary.config import Settings, configure_logging, load_settings
from ytsummary.llm_providers import get_llm_provider
from ytsummary.models import YoutubeSummaryRequest
from ytsummary.rate_limit import RateLimiter, RateLimitExceeded
from ytsummary.service import SummaryService
from ytsummary.store import RecordConflictError, SummaryStore
from ytsummary.summary_tool import SummaryParseError
from ytsummary.text import get_encoding
from ytsummary.transcripts import (
    InvalidVideoUrlError,
    TranscriptNotFoundError,
    YoutubeClient,
)

logger = logging.getLogger(__name__)

SUMMARY_ROUTE = "/api/tools/youtube-summary"
SUPERADMIN = "SUPERADMIN"


def build_service(settings: Settings) -> SummaryService:
    return SummaryService(
        store=SummaryStore(settings.database_path),
        youtube=YoutubeClient(settings.youtube_api_key, settings.transcript_languages),
        llm=get_llm_provider(settings),
        rate_limiter=RateLimiter(
            settings.rate_limit_requests, settings.rate_limit_window_seconds
        ),
        chunk_size=settings.chunk_size,
        encoding=get_encoding(settings.model_name),
    )


def get_client_key(trust_proxy: bool = False) -> str:
    """Rate-limit key: the remote address, or the proxy-reported client when trusted."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if trust_proxy and forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr or "unknown"


def get_caller_roles(admin_api_keys: list[str]) -> list[str]:
    """SUPERADMIN for callers presenting one of the configured admin keys."""
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        key = authorization[len("bearer ") :].strip()
    else:
        key = request.headers.get("X-API-Key", "").strip()
    if key and any(hmac.compare_digest(key, admin) for admin in admin_api_keys):
        return [SUPERADMIN]
    return []


def create_app(
    settings: Settings | None = None, service: SummaryService | None = None
) -> Quart:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if service is None:
        service = build_service(settings)

    app = Quart(__name__)
    app = cors(app, allow_origin="*", allow_methods=["GET", "POST", "HEAD"])

    @app.after_serving
    async def close_store():
        service.store.close()

    @app.route("/")
    async def hello():
        return "Hello World - YouTube Summary API"

    @app.route(SUMMARY_ROUTE, methods=["GET"])
    async def get_latest_videos():
        return jsonify([record.to_json() for record in service.latest()])

    @app.route(SUMMARY_ROUTE, methods=["POST"])
    async def create_youtube_summary():
        data = await request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400
        try:
            body = YoutubeSummaryRequest.model_validate(data)
        except ValidationError as e:
            details = json.loads(e.json(include_url=False))
            return jsonify({"error": "Invalid request body", "details": details}), 400

        roles = get_caller_roles(settings.admin_api_keys)
        refresh = request.args.get("refresh") == "true" and SUPERADMIN in roles

        record = await service.create(
            body.url, refresh=refresh, client_key=get_client_key(settings.trust_proxy)
        )
        return jsonify(record.to_json())

    @app.errorhandler(InvalidVideoUrlError)
    async def invalid_url(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(TranscriptNotFoundError)
    async def transcript_not_found(e):
        logger.error(f"Transcript not found: {e}")
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(RecordConflictError)
    async def record_conflict(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(RateLimitExceeded)
    async def rate_limited(e):
        return jsonify({"error": str(e)}), 429, {"Retry-After": str(e.retry_after)}

    @app.errorhandler(SummaryParseError)
    async def summary_parse_error(e):
        logger.error(f"Could not parse summary: {e}")
        return jsonify({"error": str(e)}), 502

    @app.errorhandler(Exception)
    async def unexpected_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.description}), e.code
        logger.exception(f"Unexpected error on {request.method} {request.path}")
        return jsonify({"error": "An unexpected error occurred."}), 500

    return app
