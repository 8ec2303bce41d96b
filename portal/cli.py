import click
from flask import current_app

from portal import db
from portal.errors import PortalError
from portal.repository import SqlRepository


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create the database tables."""
        if not isinstance(current_app.extensions["repository"], SqlRepository):
            click.echo("Repository is not SQL backed; nothing to create.")
            return
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-faculty")
    @click.argument("employee_id")
    @click.option("--name", prompt=True)
    @click.option("--email", prompt=True)
    @click.option("--department", prompt=True)
    @click.option("--phone", default="")
    @click.password_option()
    def create_faculty(employee_id, name, email, department, phone, password):
        """Add a faculty account (faculty cannot self-register)."""
        try:
            current_app.extensions["accounts"].create_faculty({
                "employeeId": employee_id,
                "name": name,
                "email": email,
                "department": department,
                "phone": phone,
                "password": password,
                "confirmPassword": password,
            })
        except PortalError as e:
            raise click.ClickException(e.message)
        click.echo(f"Faculty {employee_id} created.")

    @app.cli.command("purge-sessions")
    def purge_sessions():
        """Delete expired login sessions."""
        count = current_app.extensions["sessions"].purge()
        click.echo(f"Removed {count} expired sessions.")
