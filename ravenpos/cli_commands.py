"""
Flask CLI commands for store setup.

Commands:
- flask init-db: Create database tables
- flask seed-categories: Insert the default categories and tax rates
- flask reload-tax-rates: Reload category tax rates into the running config
- flask apply-shopify-level: Apply a Shopify inventory level to an item
"""

import click
from flask import current_app
from ravenpos.database import get_session, create_all
from ravenpos.models import Category
from ravenpos.services.inventory_sync_service import InboundResult, apply_inbound_level
from ravenpos.services.tax_service import DEFAULT_TAX_RATES, load_from_categories


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_all()
        click.echo(click.style('✅ Tables created', fg='green'))

    @app.cli.command('seed-categories')
    def seed_categories():
        """Insert default categories (existing names are left alone)."""
        db_session = get_session()
        existing = {name for (name,) in db_session.query(Category.name).all()}
        created = 0
        try:
            for name, rate in DEFAULT_TAX_RATES.items():
                if name in existing:
                    continue
                db_session.add(Category(name=name, tax_rate=rate))
                created += 1
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error seeding categories: {str(e)}', fg='red'))
            return

        click.echo(click.style(f'✅ {created} categor{"y" if created == 1 else "ies"} created', fg='green'))

    @app.cli.command('reload-tax-rates')
    def reload_tax_rates():
        """Load tax rates from the categories table."""
        db_session = get_session()
        table = current_app.extensions['tax_rates']
        try:
            count = load_from_categories(db_session, table)
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error loading tax rates: {str(e)}', fg='red'))
            return

        click.echo(click.style(f'✅ Loaded {count} tax rate(s)', fg='green'))
        for name, rate in sorted(table.snapshot().items()):
            click.echo(f'   {name}: {rate}')

    @app.cli.command('apply-shopify-level')
    @click.argument('inventory_item_id')
    @click.argument('available', type=int)
    def apply_shopify_level(inventory_item_id, available):
        """Apply an inventory level reported by Shopify to the matching item."""
        db_session = get_session()
        window = current_app.config.get('SYNC_ECHO_WINDOW_SECONDS', 10)
        try:
            status = apply_inbound_level(db_session, inventory_item_id, available, window_seconds=window)
        except Exception as e:
            click.echo(click.style(f'❌ Error applying level: {str(e)}', fg='red'))
            return

        color = 'green' if status == InboundResult.UPDATED else 'yellow'
        click.echo(click.style(f'{inventory_item_id}: {status}', fg=color))
