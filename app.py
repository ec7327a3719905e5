"""
Main Flask application entry point for the payment webhooks service
"""
import os
from flask import Flask, jsonify
from config import Config
from models import db
from utils.mail import mail


def create_app(config_class=Config):
    """Application factory pattern. DB init runs inside app_context; non-fatal on failure."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    mail.init_app(app)

    @app.errorhandler(500)
    def handle_500_error(e):
        return jsonify({"error": "Server error"}), 500

    # Create tables inside app context; do not crash if DB temporarily unavailable
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning("Database init skipped (non-fatal): %s", e)

    from routes import webhooks_bp
    app.register_blueprint(webhooks_bp)

    if not app.config.get("PAYSTACK_WEBHOOK_SECRET"):
        app.logger.warning("PAYSTACK_WEBHOOK_SECRET is not set; Paystack webhook signatures will not be checked")

    return app


# WSGI entry point (Railway/Render): gunicorn -c gunicorn_config.py app:app
app = create_app()
application = app

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get("FLASK_DEBUG", "false").lower() in ("true", "1"))
