import logging
import os

from flask import Flask, g, jsonify, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.cellhub.config import load_config
from app.cellhub.db import init_db, teardown_db_session
from app.cellhub.errors import AppError, SessionInvalid
from app.cellhub.routes import bp as routes_bp
from app.cellhub.auth import bp as auth_bp, load_request_identity
from app.cellhub.modules.dashboard.admin import bp as dashboard_bp
from app.cellhub.modules.cells.admin import bp as cells_bp
from app.cellhub.modules.module_names.admin import bp as module_names_bp
from app.cellhub.modules.meetings.admin import bp as meetings_bp
from app.cellhub.modules.email_logs.admin import bp as email_logs_bp
from app.cellhub.modules.consolidation.admin import bp as consolidation_bp

PANEL_PREFIX = "/api/panel"


def _check_production_config(app: Flask) -> None:
    env = (app.config.get("ENV") or "").strip().lower()
    if env not in ("prod", "production"):
        return
    if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
        raise RuntimeError("DATABASE_URL is required in production.")
    if str(app.config["DATABASE_URL"]).startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
    if len(str(app.config.get("JWT_SECRET") or "")) < 32:
        raise RuntimeError("JWT_SECRET must be at least 32 characters in production.")


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(e: AppError):  # type: ignore[no-redef]
        if isinstance(e, SessionInvalid):
            app.logger.info("Session invalid (request_id=%s path=%s)", getattr(g, "request_id", None), request.path)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):  # type: ignore[no-redef]
        kind = (e.name or "error").lower().replace(" ", "_")
        return jsonify({"error": kind, "message": e.description}), e.code or 500

    @app.errorhandler(Exception)
    def _err_500(e: Exception):  # type: ignore[no-redef]
        # Full stack trace server-side; nothing internal goes back to the caller.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "fatal", "message": "Erro interno do servidor."}), 500


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())

    logging.basicConfig(
        level=getattr(logging, app.config.get("LOG_LEVEL") or "INFO", logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Production guardrails (fail fast with clear logs)
    _check_production_config(app)

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(dashboard_bp, url_prefix=PANEL_PREFIX)
    app.register_blueprint(cells_bp, url_prefix=PANEL_PREFIX)
    app.register_blueprint(module_names_bp, url_prefix=PANEL_PREFIX)
    app.register_blueprint(meetings_bp, url_prefix=PANEL_PREFIX)
    app.register_blueprint(email_logs_bp, url_prefix=PANEL_PREFIX)
    app.register_blueprint(consolidation_bp, url_prefix=PANEL_PREFIX)

    app.before_request(load_request_identity)
    app.teardown_appcontext(teardown_db_session)
    _register_error_handlers(app)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
