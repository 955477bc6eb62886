"""CLI tools for ClinicRoute administration.

Usage:
    clinicroute seed
    clinicroute check-sla
"""

import click
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.security import hash_password
from clinicroute.core.structured_logging import configure_logging
from clinicroute.db.enums import Role, SubscriptionTier
from clinicroute.db.models import Clinic, User
from clinicroute.db.session import create_db_engine, create_session_factory
from clinicroute.schemas.auth import validate_password_strength
from clinicroute.services import case_service
from clinicroute.utils.normalization import normalize_email


def _open_session() -> Session:
    engine = create_db_engine(settings.DATABASE_URL)
    return create_session_factory(engine)()


@click.group()
def cli():
    """ClinicRoute CLI tools."""
    configure_logging(settings.LOG_LEVEL)


@cli.command()
@click.option("--name", required=True, help="Clinic name")
@click.option("--sla-days", default=5, show_default=True, type=click.IntRange(1, 90))
@click.option(
    "--tier",
    default=SubscriptionTier.STARTER.value,
    type=click.Choice([t.value for t in SubscriptionTier]),
    show_default=True,
)
def create_clinic(name: str, sla_days: int, tier: str):
    """
    Create a tenant clinic.

    Example:
        clinicroute create-clinic --name "Harley Street Imaging" --sla-days 5
    """
    db = _open_session()
    try:
        clinic = Clinic(name=name.strip(), sla_default_days=sla_days, subscription_tier=tier)
        db.add(clinic)
        db.commit()
        click.echo(f"✓ Created clinic: {clinic.name}")
        click.echo(f"  ID: {clinic.id}")
    except Exception as e:
        db.rollback()
        raise click.ClickException(str(e))
    finally:
        db.close()


@cli.command()
@click.option("--clinic-id", required=True, type=click.UUID)
@click.option("--email", required=True)
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--role", default=Role.ADMIN.value, type=click.Choice([r.value for r in Role]), show_default=True)
@click.password_option()
def create_user(clinic_id, email: str, first_name: str, last_name: str, role: str, password: str):
    """Create a user in an existing clinic (bootstrap the first admin)."""
    try:
        validate_password_strength(password)
    except ValueError as e:
        raise click.ClickException(str(e))

    db = _open_session()
    try:
        if not db.query(Clinic).filter(Clinic.id == clinic_id).first():
            raise click.ClickException(f"Clinic {clinic_id} not found")
        email = normalize_email(email)
        if db.query(User).filter(User.email == email).first():
            raise click.ClickException(f"User {email} already exists")
        user = User(
            clinic_id=clinic_id,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            role=role,
        )
        db.add(user)
        db.commit()
        click.echo(f"✓ Created {role} {email} ({user.id})")
    finally:
        db.close()


@cli.command()
def check_sla():
    """Flag overdue cases as SLA-breached (run from cron / a scheduler)."""
    db = _open_session()
    try:
        count = case_service.check_sla_breaches(db)
        click.echo(f"✓ Flagged {count} case(s) as breached")
    finally:
        db.close()


@cli.command()
def seed():
    """Load demo insurers, clinic and users."""
    from clinicroute.seed import DEMO_PASSWORD, seed_all

    db = _open_session()
    try:
        clinic = seed_all(db)
        click.echo(f"✓ Seeded demo clinic {clinic.name} ({clinic.id})")
        click.echo(f"  Demo users share the password {DEMO_PASSWORD}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
