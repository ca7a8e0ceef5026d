import logging
import uuid

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from app.salon.config import load_config
from app.salon.db import init_db, teardown_db_session
from app.salon.responses import IdConverter
from app.salon.routes import bp as routes_bp
from app.salon.modules.customers.api import bp as customers_bp
from app.salon.modules.service_records.api import bp as service_records_bp
from app.salon.modules.staff.api import bp as staff_bp
from app.salon.modules.catalog.api import bp as catalog_bp
from app.salon.modules.reports.api import bp as reports_bp

API_PREFIX = "/api"

# Tables/columns the running code depends on; older databases may predate some of them.
EXPECTED_SCHEMA: dict[str, tuple[str, ...]] = {
    "customers": ("name", "phone", "birthdate", "address", "notes"),
    "services": ("customer_id", "service_type_id", "service_name", "staff_name", "price", "service_date"),
    "service_images": ("service_id", "image_url", "storage_key", "content_type"),
    "staff_members": ("name", "role", "phone", "email", "photo_url"),
    "service_categories": ("name", "description"),
    "service_types": ("category_id", "name", "price", "duration_minutes"),
    "staff_service_assignments": ("staff_id", "service_type_id"),
    "audit_events": ("action", "entity_type", "entity_id", "metadata_json"),
}


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

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

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [
            key
            for key in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")
            if not app.config.get(key)
        ]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            try:
                from app.salon.storage import S3Storage, storage_from_config

                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except Exception as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    @app.before_request
    def _assign_request_id():
        if not getattr(g, "request_id", None):
            g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    @app.after_request
    def _echo_request_id(response):
        rid = getattr(g, "request_id", None)
        if rid:
            response.headers["X-Request-ID"] = rid
        return response

    app.url_map.converters["int"] = IdConverter

    app.register_blueprint(routes_bp)
    app.register_blueprint(customers_bp, url_prefix=API_PREFIX)
    app.register_blueprint(service_records_bp, url_prefix=API_PREFIX)
    app.register_blueprint(staff_bp, url_prefix=API_PREFIX)
    app.register_blueprint(catalog_bp, url_prefix=API_PREFIX)
    app.register_blueprint(reports_bp, url_prefix=API_PREFIX)

    app.teardown_appcontext(teardown_db_session)

    # Migration health (lean): detect drift between code expectations and DB schema.
    app.config.setdefault("_schema_health_ok", True)
    app.config.setdefault("_schema_health_missing", [])
    app.config.setdefault("_schema_health_logged", False)

    def _run_schema_health_check() -> None:
        ok = True
        missing: list[str] = []
        try:
            engine = app.extensions.get("sqlalchemy_engine")
            if engine is None:
                raise RuntimeError("sqlalchemy_engine not initialized")
            insp = sa_inspect(engine)
            for table, columns in EXPECTED_SCHEMA.items():
                if not insp.has_table(table):
                    missing.append(f"{table} (table)")
                    continue
                have = {c["name"] for c in insp.get_columns(table)}
                missing.extend(f"{table}.{col}" for col in columns if col not in have)
        except Exception as e:
            app.logger.exception("Schema health check failed: %s", e)

        if missing:
            ok = False
            app.config["_schema_health_missing"] = missing
            if not app.config.get("_schema_health_logged"):
                app.config["_schema_health_logged"] = True
                app.logger.error("DB schema out of date; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

        app.config["_schema_health_ok"] = ok
        app.config["_schema_health_checked"] = True

    _run_schema_health_check()

    @app.before_request
    def _schema_health_guardrail():  # type: ignore[no-redef]
        if app.config.get("_schema_health_ok"):
            return None
        if request.path.startswith(API_PREFIX):
            # Tables may have been created after boot (fresh deploy, tests); look again before refusing.
            _run_schema_health_check()
            if app.config.get("_schema_health_ok"):
                return None
            return (
                jsonify(
                    {
                        "error": "Database schema is out of date",
                        "missing": app.config.get("_schema_health_missing") or [],
                    }
                ),
                500,
            )
        return None

    @app.errorhandler(OperationalError)
    def _err_db_unavailable(e):  # type: ignore[no-redef]
        app.logger.exception("Database error (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Database unavailable, please try again later"}), 503

    @app.errorhandler(HTTPException)
    def _err_http(e):  # type: ignore[no-redef]
        if e.code == 413:
            app.logger.warning("Request body too large (request_id=%s)", getattr(g, "request_id", None))
            limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
            return jsonify({"error": f"File too large. Maximum size is {limit_mb}MB."}), 413
        if e.code == 404:
            return jsonify({"error": "Not found"}), 404
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
