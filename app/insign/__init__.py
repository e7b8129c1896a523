import logging
from datetime import timedelta

from flask import Flask, g, jsonify, render_template, request, session
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.insign.config import load_config
from app.insign.db import init_db, teardown_db_session
from app.insign.errors import InsignError
from app.insign.mail import MailService
from app.insign.routes import bp as routes_bp
from app.insign.auth import bp as auth_bp, load_current_admin
from app.insign.admin import bp as admin_bp
from app.insign.modules.events.admin import bp as events_bp
from app.insign.modules.events.api import bp as events_api_bp
from app.insign.modules.policies.admin import bp as policies_bp
from app.insign.modules.policies.api import bp as policies_api_bp
from app.insign.modules.policies.views import bp as policies_public_bp
from app.insign.modules.inquiries.admin import bp as inquiries_bp
from app.insign.modules.inquiries.api import bp as inquiries_api_bp
from app.insign.modules.contracts.admin import bp as contracts_bp
from app.insign.modules.accounts.admin import bp as accounts_bp

_DEFAULT_SECRETS = ("", "change-me")


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    root.setLevel(level)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.json.sort_keys = False
    _configure_logging(app.config.get("LOG_LEVEL") or "INFO")

    # CSRF protection (minimal)
    from app.insign.security import csrf_exempt_path, ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.insign.rbac import admin_has_permission

        def has_perm(key: str) -> bool:
            return admin_has_permission(getattr(g, "current_admin", None), key)

        return {"has_perm": has_perm}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.before_request
    def _csrf_guard():
        if csrf_exempt_path(request.path):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Login/logout carry no session state worth forging.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if str(app.config.get("SECRET_KEY") or "") in _DEFAULT_SECRETS:
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if str(app.config.get("JWT_SECRET") or "") in _DEFAULT_SECRETS:
            raise RuntimeError("JWT_SECRET must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.extensions["mail"] = MailService(app.config)
    if not (app.config.get("SMTP_HOST") and app.config.get("SMTP_USER") and app.config.get("SMTP_PASS")):
        app.logger.warning("SMTP is not configured; outbound mail will fail until SMTP_HOST/SMTP_USER/SMTP_PASS are set.")

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/adm")
    app.register_blueprint(admin_bp, url_prefix="/adm")
    app.register_blueprint(events_bp, url_prefix="/adm")
    app.register_blueprint(policies_bp, url_prefix="/adm")
    app.register_blueprint(inquiries_bp, url_prefix="/adm")
    app.register_blueprint(contracts_bp, url_prefix="/adm")
    app.register_blueprint(accounts_bp, url_prefix="/adm")
    app.register_blueprint(events_api_bp, url_prefix="/api")
    app.register_blueprint(policies_api_bp, url_prefix="/api")
    app.register_blueprint(inquiries_api_bp, url_prefix="/api")
    app.register_blueprint(policies_public_bp, url_prefix="/policies")

    app.before_request(load_current_admin)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(InsignError)
    def _err_insign(e: InsignError):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        if e.status_code >= 500:
            app.logger.error("%s (request_id=%s): %s", type(e).__name__, rid, e.message)
        else:
            app.logger.info("%s (request_id=%s): %s", type(e).__name__, rid, e.message)
        if _wants_json():
            resp = jsonify(e.to_dict())
            resp.status_code = e.status_code
            if e.status_code == 401:
                resp.headers["WWW-Authenticate"] = "Bearer"
            return resp
        template = f"errors/{e.status_code}.html" if e.status_code in (400, 403, 404) else "errors/500.html"
        return render_template(template, message=e.message), e.status_code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        if _wants_json():
            return jsonify({"error": "internal_error", "message": "An unexpected error occurred."}), 500
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _wants_json():
            return jsonify({"error": "not_found", "message": "Resource not found."}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if _wants_json():
            return jsonify({"error": "forbidden", "message": "Forbidden."}), 403
        return render_template("errors/403.html", missing_permission=missing), 403

    @app.errorhandler(405)
    def _err_405(e: HTTPException):  # type: ignore[no-redef]
        if _wants_json():
            return jsonify({"error": "method_not_allowed", "message": e.description}), 405
        return e

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
