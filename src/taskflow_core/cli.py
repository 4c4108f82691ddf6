"""Administrative command-line interface.

Usage:
    taskflow-admin init-db                                   # Create tables without migrations
    taskflow-admin create-admin --email admin@example.com    # Create an admin (prompts for password)
    taskflow-admin create-admin --with-demo-user             # Also create user@example.com
    taskflow-admin --version
"""
import sys

import click

from . import __version__, crud, models
from .config import get_settings
from .database import SessionLocal, engine

DEMO_USER_EMAIL = "user@example.com"
DEMO_USER_PASSWORD = "user123"


@click.group()
@click.version_option(version=__version__, prog_name="taskflow-admin")
def main() -> None:
    """Taskflow administration commands."""


@main.command("init-db")
def init_db() -> None:
    """Create all tables directly from the models.

    Intended for local development; deployments run `alembic upgrade head`.
    """
    models.Base.metadata.create_all(bind=engine)
    click.echo(f"Created tables on {engine.url.render_as_string(hide_password=True)}")


@main.command("create-admin")
@click.option("--email", default="admin@example.com", show_default=True, help="Admin email address")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Admin password")
@click.option("--with-demo-user", is_flag=True, help=f"Also create a regular user {DEMO_USER_EMAIL}")
def create_admin(email: str, password: str, with_demo_user: bool) -> None:
    """Create an initial admin account."""
    settings = get_settings()
    if len(password) < 6:
        click.echo("Error: password must be at least 6 characters", err=True)
        sys.exit(1)

    db = SessionLocal()
    try:
        try:
            admin = crud.create_user(
                db,
                email=email,
                password=password,
                role=models.UserRole.ADMIN,
                bcrypt_rounds=settings.bcrypt_rounds,
            )
        except crud.DuplicateEmailError:
            click.echo(f"Error: user {email} already exists", err=True)
            sys.exit(1)
        click.echo(click.style("Admin user created: ", fg="green") + admin.email)

        if with_demo_user:
            if crud.get_user_by_email(db, DEMO_USER_EMAIL):
                click.echo(f"Demo user {DEMO_USER_EMAIL} already exists")
            else:
                user = crud.create_user(
                    db,
                    email=DEMO_USER_EMAIL,
                    password=DEMO_USER_PASSWORD,
                    bcrypt_rounds=settings.bcrypt_rounds,
                )
                click.echo(click.style("Regular user created: ", fg="green") + user.email)
    finally:
        db.close()


if __name__ == "__main__":
    main()
