import click
from werkzeug.security import generate_password_hash

from .extensions import db


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables that do not exist yet."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("hash-password")
    @click.password_option()
    def hash_password(password):
        """Print a hash for SHARED_USER_PASSWORD_HASH."""
        click.echo(generate_password_hash(password))
