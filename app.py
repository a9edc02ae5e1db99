import logging
import os

from config import config
from flask import Flask, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from flask_migrate import Migrate


def create_app(config_name=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Get allowed origins from environment variable
    ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")

    CORS(
        app,
        resources={
            r"/reviews/*": {"origins": ALLOWED_ORIGINS},
            r"/progress/*": {"origins": ALLOWED_ORIGINS},
        },
        supports_credentials=True,
    )

    # Initialize SQLAlchemy
    from models import db

    db.init_app(app)

    # Initialize Flask-Migrate
    migrate = Migrate(app, db)

    # Sign-in happens upstream; Flask-Login only resolves the learner per request
    login_manager = LoginManager()
    login_manager.init_app(app)

    # Import all models to ensure they are registered with SQLAlchemy
    from models.activity_event import ActivityEvent
    from models.learner import Learner
    from models.schedule_entry import ScheduleEntry

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(Learner, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "Authentication required"}), 401

    # Delivery transport for the notification sweep; replace to send real push/email
    from services.delivery import LoggingDeliveryChannel

    app.extensions["review_delivery_channel"] = LoggingDeliveryChannel()

    # Register API blueprints
    from routes.cron import bp as cron_bp
    from routes.progress import bp as progress_bp
    from routes.reviews import bp as reviews_bp

    app.register_blueprint(reviews_bp)
    app.register_blueprint(progress_bp)
    app.register_blueprint(cron_bp)

    # Validate the configured delay table at startup rather than on first review
    from services.interval_policy import IntervalPolicy

    IntervalPolicy.from_config(app.config)

    # Home route
    @app.route("/")
    def home():
        return jsonify({"message": "Review scheduler", "version": "1.0.0"})

    # Health check route
    @app.route("/health")
    def health_check():
        try:
            db.session.execute(db.text("SELECT 1"))
            return jsonify({"status": "healthy", "database": "connected"}), 200
        except Exception as e:
            app.logger.error(f"Health check failed: {e}")
            return jsonify({"status": "unhealthy", "error": str(e)}), 500

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, port=5001)
