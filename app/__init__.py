import structlog
from flask import Flask, render_template
from werkzeug.exceptions import NotFound as HTTPNotFound, RequestEntityTooLarge

from app.config import Config
from app.db import db
from app.errors import NotFound, StorageFailure
from app.extensions.blob_store import init_blob_store
from app.extensions.extensions import ma
from app.extensions.logging import configure_logging
from app.routes.main_routes import main_bp
from app.routes.post_routes import post_bp


logger = structlog.get_logger(__name__)


def _register_error_handlers(app):
    @app.errorhandler(NotFound)
    @app.errorhandler(HTTPNotFound)
    def handle_not_found(error):
        return render_template(
            "errors/error.html",
            title="Not found",
            message="The page or post you are looking for does not exist.",
        ), 404

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return render_template(
            "errors/error.html",
            title="Upload too large",
            message="The submitted form is larger than the server accepts.",
        ), 413

    @app.errorhandler(StorageFailure)
    def handle_storage_failure(error):
        logger.error("storage.failure", error=str(error), exc_info=error)
        return render_template(
            "errors/error.html",
            title="Storage error",
            message="Media storage is unavailable",
        ), 503


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    configure_logging(app)

    db.init_app(app)
    ma.init_app(app)
    init_blob_store(app)

    app.register_blueprint(main_bp)
    app.register_blueprint(post_bp)
    _register_error_handlers(app)

    with app.app_context():
        db.create_all()

    logger.info(
        "app.started",
        media_storage=app.config["MEDIA_STORAGE"],
        per_page=app.config["POSTS_PER_PAGE"],
    )
    return app
