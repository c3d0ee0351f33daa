"""Flask application factory."""
from flask import Flask, jsonify
from ravenpos.database import init_db, get_session
import logging
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.debug and not app.testing:
        logging.basicConfig(
            level=os.getenv('LOG_LEVEL', 'INFO'),
            format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
        )

    # Initialize database
    init_db(app)

    # Tax rates: one table per app, refreshed from the categories table
    from ravenpos.services.tax_service import TaxRateTable
    app.extensions['tax_rates'] = TaxRateTable()

    if app.config.get('LOAD_TAX_RATES_ON_STARTUP'):
        load_startup_tax_rates(app)

    # Shopify inventory sync (None when not configured)
    from ravenpos.services.shopify_client import ShopifyClient
    app.extensions['shopify'] = ShopifyClient.from_config(app.config)
    if app.extensions['shopify'] is None:
        app.logger.info("Shopify sync not configured; inventory pushes disabled")

    # Error Handlers
    from ravenpos.exceptions import RavenPosError

    @app.errorhandler(RavenPosError)
    def handle_ravenpos_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"RavenPosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from ravenpos.blueprints.pos import pos_bp
    app.register_blueprint(pos_bp)

    # Register CLI commands
    from ravenpos.cli_commands import init_cli_commands
    init_cli_commands(app)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    return app


def load_startup_tax_rates(app):
    """Fill the app's tax table from the categories table; defaults stay on failure."""
    from ravenpos.services.tax_service import load_from_categories

    db_session = get_session()
    try:
        count = load_from_categories(db_session, app.extensions['tax_rates'])
        app.logger.info(f"Loaded {count} category tax rate(s)")
    except Exception as e:
        # Missing table on first boot: keep the default rates
        app.logger.warning(f"Could not load category tax rates, using defaults: {e}")
        db_session.rollback()
    finally:
        db_session.remove()
