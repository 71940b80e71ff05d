import os
from dotenv import load_dotenv
from flask import Flask, jsonify

from Controllers.errorController import error_bp
from Routes.itemRoutes import item_routes
from Routes.claimRoutes import claim_routes, payment_routes
from Utils.commands import register_commands
from Utils.db import init_db
from Utils.itemCache import item_cache
from Utils.limiter import limiter
from Utils.logger import setup_logging

load_dotenv()


def load_config():
    """Settings read from the environment (.env supported)."""
    return {
        'SECRET_KEY': os.getenv("SECRET_KEY", "supersecretkey"),
        'JWT_SECRET': os.getenv("JWT_SECRET", "super_jwt_secret"),
        'MONGODB_URI': os.getenv("MONGODB_URI", "mongodb://localhost:27017/lostnfound_db"),
        'LOG_DIR': os.getenv("LOG_DIR", "logs"),
        'ENABLE_SMTP_ALERTS': os.getenv("ENABLE_SMTP_ALERTS", "false"),
        'RATELIMIT_STORAGE_URI': os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        'LIMIT_CLAIMS': os.getenv("LIMIT_CLAIMS", "10 per minute"),
        'ITEM_CACHE_TTL': int(os.getenv("ITEM_CACHE_TTL", 30)),
        'MPESA_ENV': os.getenv("MPESA_ENV", "sandbox"),
        'MPESA_CONSUMER_KEY': os.getenv("MPESA_CONSUMER_KEY"),
        'MPESA_CONSUMER_SECRET': os.getenv("MPESA_CONSUMER_SECRET"),
        'MPESA_BUSINESS_SHORT_CODE': os.getenv("MPESA_BUSINESS_SHORT_CODE"),
        'MPESA_PASSKEY': os.getenv("MPESA_PASSKEY"),
        'MPESA_CALLBACK_URL': os.getenv("MPESA_CALLBACK_URL"),
        'MPESA_TIMEOUT_SECONDS': float(os.getenv("MPESA_TIMEOUT_SECONDS", 15)),
    }


def create_app(overrides=None):
    # ----------------------------
    # Flask app configuration
    # ----------------------------
    app = Flask(__name__)
    app.config.update(load_config())
    app.config.update(overrides or {})
    app.json.sort_keys = False

    # ----------------------------
    # Database & caches
    # ----------------------------
    init_db(app.config['MONGODB_URI'], app.config.get('MONGO_CLIENT_CLASS'))
    item_cache.ttl = app.config['ITEM_CACHE_TTL']
    item_cache.invalidate()

    # ----------------------------
    # Rate Limiter
    # ----------------------------
    limiter.init_app(app)

    # ----------------------------
    # Logging Configuration
    # ----------------------------
    if not app.config.get('TESTING'):
        setup_logging(app)

    # ----------------------------
    # Register blueprints
    # ----------------------------
    app.register_blueprint(error_bp)
    app.register_blueprint(item_routes)
    app.register_blueprint(claim_routes)
    app.register_blueprint(payment_routes)
    register_commands(app)

    @app.route('/health')
    @limiter.exempt
    def health():
        return jsonify({"status": "ok"}), 200

    @app.route('/robots.txt')
    def robots_txt():
        return "User-agent: *\nDisallow: /api/\n", 200, {'Content-Type': 'text/plain'}

    return app


# ----------------------------
# Run the app
# ----------------------------
if __name__ == '__main__':
    port = int(os.getenv('PORT', 4000))
    app = create_app()
    app.logger.info(f"App running on port {port}...")
    app.run(host='0.0.0.0', port=port, debug=False)
