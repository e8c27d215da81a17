"""
Flask CLI commands for setting up branches and staff.

Commands:
- flask init-db: Create all tables
- flask create-branch: Create a branch
- flask create-user: Create a staff profile bound to a branch
"""

import click
import re
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_session, create_all
from app.models import Branch, Profile, UserRole

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-branch')
    @click.option('--name', prompt=True, help='Branch name')
    @click.option('--currency', default=None, help='ISO currency code (defaults to DEFAULT_CURRENCY)')
    @click.option('--country', default=None)
    @click.option('--address', default=None)
    def create_branch(name, currency, country, address):
        """Create a new branch."""
        db_session = get_session()
        branch = Branch(
            name=name.strip(),
            currency=(currency or current_app.config['DEFAULT_CURRENCY']).upper(),
            country=country,
            address=address,
        )
        try:
            db_session.add(branch)
            db_session.commit()
        except SQLAlchemyError as e:
            db_session.rollback()
            raise click.ClickException(f'Could not create branch: {e}')

        click.echo(click.style(f'Branch created: {branch.name} (id={branch.id}, {branch.currency})', fg='green'))

    @app.cli.command('create-user')
    @click.option('--email', prompt=True, help='Login email')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
    @click.option('--branch-id', type=int, prompt=True)
    @click.option('--role', type=click.Choice([r.value for r in UserRole]), default=UserRole.CASHIER.value)
    @click.option('--full-name', default=None)
    def create_user(email, password, branch_id, role, full_name):
        """Create a staff profile."""
        if not re.match(EMAIL_PATTERN, email):
            raise click.BadParameter('Invalid email. Use user@example.com', param_hint='--email')
        if len(password) < 6:
            raise click.BadParameter('Password must be at least 6 characters.', param_hint='--password')

        db_session = get_session()
        branch = db_session.get(Branch, branch_id)
        if branch is None:
            raise click.ClickException(f'Branch {branch_id} does not exist.')
        if db_session.query(Profile).filter_by(email=email).first():
            raise click.ClickException(f'A user with email {email} already exists.')

        profile = Profile(email=email, full_name=full_name, role=role, branch_id=branch.id,
                          country=branch.country, active=True)
        profile.set_password(password)
        try:
            db_session.add(profile)
            db_session.commit()
        except SQLAlchemyError as e:
            db_session.rollback()
            raise click.ClickException(f'Could not create user: {e}')

        click.echo(click.style(f'User created: {email} ({role}) in branch {branch.name}', fg='green'))
