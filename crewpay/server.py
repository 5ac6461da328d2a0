import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from crewpay.config import DevConfig
from crewpay.extensions import db
from crewpay.services.commission_rate_service import CommissionRateService
from crewpay.services.crew_directory import CrewDirectory
from crewpay.services.rate_resolver import RateResolver
from crewpay.utils.request_logger import RequestLogger

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

blueprints = [
    ('commission_rate', '/api'),
    ('commission_entry', '/api'),
    ('payout', '/api'),
    ('payroll', '/api'),
]


def configure_logging(app):
    logs_dir = app.config.get('LOGS_DIR')
    handlers = [logging.StreamHandler()]
    if logs_dir and not app.config.get('TESTING'):
        os.makedirs(logs_dir, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(logs_dir, 'app.log')))
    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=handlers,
    )


def register_models():
    # Imported for their side effect of registering tables on db.metadata
    from crewpay.models import booking, crew_member, commission_rate, commission_entry, payout  # noqa: F401


def create_app(config_object=DevConfig):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    uri = app.config.get('SQLALCHEMY_DATABASE_URI') or ''
    if uri.startswith('sqlite:///') and ':memory:' not in uri:
        os.makedirs(os.path.dirname(uri[len('sqlite:///'):]) or '.', exist_ok=True)
    logger.info("Database connected: %s", "sqlite" if "sqlite" in uri else "non-sqlite")

    db.init_app(app)
    register_models()

    # One resolver per application; refreshed on rate changes
    app.extensions['rate_resolver'] = RateResolver(
        rate_source=CommissionRateService.list_active_rates,
        crew_directory=CrewDirectory,
        ttl_seconds=app.config.get('RATE_CACHE_TTL_SECONDS', 300),
    )

    RequestLogger.init_app(app)

    for blueprint_name, prefix in blueprints:
        module = __import__(f'crewpay.api.{blueprint_name}', fromlist=[f'{blueprint_name}_bp'])
        app.register_blueprint(getattr(module, f'{blueprint_name}_bp'), url_prefix=prefix)
        logger.debug(f"Registered blueprint: {blueprint_name} with prefix: {prefix}")

    @app.route('/api/health')
    def health():
        healthy = db.health_check()
        return jsonify({
            'status': 'ok' if healthy else 'degraded',
            'database': 'up' if healthy else 'down',
            'pool': db.get_pool_stats(),
        }), 200 if healthy else 503

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'API endpoint not found', 'path': request.path}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed', 'path': request.path}), 405

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description, 'path': request.path}), e.code
        logger.error(f"Unhandled exception for {request.method} {request.url}: {e}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500

    @app.cli.command('init-db')
    def init_db():
        """Create the payroll tables."""
        db.create_all()
        logger.info("Database tables created")

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host=app.config.get('FLASK_HOST', '0.0.0.0'), port=app.config.get('FLASK_PORT', 5000),
            debug=app.config.get('DEBUG', False))
