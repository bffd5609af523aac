# finance_tracker/cli.py
import json
import logging
import os

import click
from dotenv import load_dotenv

from finance_tracker import handlers
from finance_tracker.auth import issue_token
from finance_tracker.config import (
    configure_logging,
    has_default_secret,
    initial_config,
    load_config,
    save_config,
)
from finance_tracker.database import init_db
from finance_tracker.errors import ValidationError
from finance_tracker.manual import import_manual_records
from finance_tracker.web import create_server

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    '--config', 'config_path',
    default='config.yaml',
    type=click.Path(dir_okay=False),
    help='Path to config.yaml (defaults are used when it does not exist)'
)
@click.option(
    '--env-file', 'env_file',
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='Optional .env file with FINANCE_TRACKER_* overrides'
)
@click.option(
    '--db', 'db_path',
    default=None,
    type=click.Path(dir_okay=False),
    help='SQLite database file (overrides config)'
)
@click.pass_context
def main(ctx, config_path, env_file, db_path):
    """Personal finance tracker: transactions, budgets and savings goals."""
    if env_file:
        load_dotenv(env_file)
    try:
        cfg = load_config(config_path)
    except ValueError as exc:
        raise click.ClickException(str(exc))
    if db_path:
        cfg['db_path'] = db_path
    configure_logging(cfg['log_level'])
    ctx.obj = cfg
    ctx.meta['config_path'] = config_path


@main.command()
@click.option('--host', default=None, help='Host to bind (default from config)')
@click.option('--port', default=None, type=int, help='Port to bind (default from config)')
@click.pass_obj
def serve(cfg, host, port):
    """Run the JSON API."""
    if has_default_secret(cfg):
        raise click.ClickException(
            "jwt_secret is unset or still the shipped default; run `finance-tracker init` "
            "or set FINANCE_TRACKER_JWT_SECRET"
        )
    host = host or cfg['host']
    port = port or cfg['port']
    init_db(cfg['db_path'])
    server = create_server(cfg['db_path'], cfg['jwt_secret'], host, port)
    click.echo(f"Finance tracker API running at http://{host}:{port} (db: {cfg['db_path']})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()


@main.command()
@click.option('--force', is_flag=True, help='Overwrite an existing config file')
@click.pass_context
def init(ctx, force):
    """Write a config file with defaults and a new jwt_secret."""
    path = ctx.meta['config_path']
    if os.path.exists(path) and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    cfg = initial_config()
    cfg['db_path'] = ctx.obj['db_path']
    save_config(cfg, path)
    click.echo(f"Wrote {path}")


@main.command()
@click.argument('owner')
@click.option('--ttl-hours', default=None, type=float, help='Token lifetime in hours')
@click.pass_obj
def token(cfg, owner, ttl_hours):
    """Issue a bearer token for OWNER."""
    click.echo(issue_token(owner, cfg['jwt_secret'], ttl_hours or cfg['token_ttl_hours']))


@main.command()
@click.argument('owner')
@click.option('--start-date', default=None, help='Inclusive ISO start date for transaction stats')
@click.option('--end-date', default=None, help='Inclusive ISO end date for transaction stats')
@click.pass_obj
def stats(cfg, owner, start_date, end_date):
    """Print transaction, budget and savings goal statistics for OWNER."""
    db_path = cfg['db_path']
    try:
        payload = {
            'transactions': handlers.transaction_stats(db_path, owner, start_date, end_date),
            'budgets': handlers.budget_stats(db_path, owner),
            'savingsGoals': handlers.savings_goal_stats(db_path, owner),
        }
    except ValidationError as exc:
        raise click.BadParameter(str(exc))
    click.echo(json.dumps(payload, indent=2))


@main.command('import')
@click.argument('owner')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def import_records(cfg, owner, path):
    """Load transactions, budgets and savings goals for OWNER from a YAML file."""
    try:
        counts = import_manual_records(path, owner, cfg['db_path'])
    except ValidationError as exc:
        raise click.ClickException(str(exc))
    click.echo(
        f"Imported {counts['transactions']} transaction(s), {counts['budgets']} budget(s) "
        f"and {counts['savingsGoals']} savings goal(s) into {cfg['db_path']}."
    )
