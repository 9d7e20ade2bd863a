"""CLI tools for care connections administration."""

from uuid import UUID

import click

from care_connections.core.security import create_session_token
from care_connections.db.base import Base
from care_connections.db.enums import ProfileType
from care_connections.db.models import Profile
from care_connections.db.session import SessionLocal, engine


@click.group()
def cli():
    """Care connections CLI tools."""
    pass


@cli.command()
def init_db():
    """
    Create tables directly from the models.

    For local development only; deployed databases use `alembic upgrade head`.
    """
    Base.metadata.create_all(bind=engine)
    click.echo("✓ Tables created")


@cli.command()
@click.option(
    "--type",
    "profile_type",
    type=click.Choice([t.value for t in ProfileType]),
    required=True,
    help="Profile type",
)
@click.option("--name", required=True, help="Display name")
@click.option("--city", default=None, help="City")
@click.option("--state", default=None, help="State abbreviation")
@click.option("--care-type", "care_types", multiple=True, help="Care type (repeatable)")
def create_profile(
    profile_type: str,
    name: str,
    city: str | None,
    state: str | None,
    care_types: tuple[str, ...],
):
    """
    Create a profile for local testing.

    Example:
        python -m care_connections.cli create-profile --type family --name "Jane Doe" --city Houston --state TX --care-type "Home Care"
    """
    db = SessionLocal()
    try:
        profile = Profile(
            type=profile_type,
            display_name=name,
            city=city,
            state=state,
            care_types=list(care_types),
            metadata_={},
        )
        db.add(profile)
        db.commit()
        click.echo(f"✓ Created {profile_type} profile: {name}")
        click.echo(f"  ID: {profile.id}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--profile-id", required=True, help="Profile to act as")
@click.option("--account-id", default=None, help="Account id (defaults to the profile's)")
def issue_token(profile_id: str, account_id: str | None):
    """Mint a session token for a profile (dev helper)."""
    db = SessionLocal()
    try:
        profile = db.get(Profile, UUID(profile_id))
        if not profile:
            click.echo(f"❌ Profile {profile_id} not found")
            return
        account = UUID(account_id) if account_id else (profile.account_id or profile.id)
        click.echo(create_session_token(account, profile.id))
    finally:
        db.close()


if __name__ == "__main__":
    cli()
