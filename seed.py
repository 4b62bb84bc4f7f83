import click
from flask import current_app
from flask.cli import with_appcontext
from extensions import db
from models import User, Role


def seed_admin(email, password, name='Super Admin'):
    """
    Creates a super admin (ADMIN without an NGO) unless the email is taken.
    Returns the new user, or None if one already exists.
    """
    if User.query.filter_by(email=email).first():
        current_app.logger.info("Admin user %s already exists. Skipping.", email)
        return None

    admin = User(name=name, email=email, role=Role.ADMIN)
    admin.set_password(password)

    db.session.add(admin)
    db.session.commit()
    current_app.logger.info("Super admin %s created.", email)
    return admin


@click.command('seed-admin')
@click.option('--email', default='admin@donationhub.org', show_default=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--name', default='Super Admin', show_default=True)
@with_appcontext
def seed_admin_command(email, password, name):
    """Create a super admin account."""
    if seed_admin(email, password, name):
        click.echo(f"Admin {email} created.")
    else:
        click.echo(f"Admin {email} already exists. Skipping.")
