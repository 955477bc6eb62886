"""Demo reference data: insurers, a demo clinic and its staff.

Idempotent: existing insurers (by code), clinic (by name) and users (by
email) are left alone.
"""

import logging

from sqlalchemy.orm import Session

from clinicroute.core.security import hash_password
from clinicroute.db.enums import Role, SubscriptionTier
from clinicroute.db.models import Clinic, Insurer, User

logger = logging.getLogger(__name__)

DEMO_CLINIC_NAME = "ClinicRoute Demo Clinic"
DEMO_PASSWORD = "Password123!"

INSURERS = [
    {
        "name": "Bupa",
        "code": "BUPA",
        "email": "providers@bupa.co.uk",
        "phone": "0345 600 6960",
        "portal_url": "https://www.bupa.co.uk/providers",
        "avg_response_days": 3,
    },
    {
        "name": "AXA Health",
        "code": "AXA",
        "email": "healthcareproviders@axa-ppp.co.uk",
        "phone": "0800 169 6784",
        "portal_url": "https://www.axahealth.co.uk/providers",
        "avg_response_days": 4,
    },
    {
        "name": "Vitality",
        "code": "VITALITY",
        "email": "providers@vitality.co.uk",
        "phone": "0345 601 0456",
        "portal_url": "https://www.vitality.co.uk/providers",
        "avg_response_days": 3,
    },
    {
        "name": "Aviva",
        "code": "AVIVA",
        "email": "healthcare.providers@aviva.co.uk",
        "phone": "0800 068 5821",
        "portal_url": "https://www.aviva.co.uk/providers",
        "avg_response_days": 4,
    },
    {
        "name": "Cigna",
        "code": "CIGNA",
        "email": "ukproviders@cigna.com",
        "portal_url": "https://www.cigna.co.uk/providers",
        "avg_response_days": 5,
    },
]

DEMO_USERS = [
    ("admin@clinicroute.demo", "Alex", "Morgan", Role.ADMIN),
    ("emma@clinicroute.demo", "Emma", "Clarke", Role.MANAGER),
    ("sophie@clinicroute.demo", "Sophie", "Patel", Role.CLINICIAN),
    ("james@clinicroute.demo", "James", "Wilson", Role.CLINICIAN),
]


def seed_insurers(db: Session) -> list[Insurer]:
    insurers = []
    for data in INSURERS:
        insurer = db.query(Insurer).filter(Insurer.code == data["code"]).first()
        if not insurer:
            insurer = Insurer(**data)
            db.add(insurer)
        insurers.append(insurer)
    db.flush()
    return insurers


def seed_demo_clinic(db: Session, password: str = DEMO_PASSWORD) -> Clinic:
    clinic = db.query(Clinic).filter(Clinic.name == DEMO_CLINIC_NAME).first()
    if not clinic:
        clinic = Clinic(
            name=DEMO_CLINIC_NAME,
            email="hello@clinicroute.demo",
            phone="020 7946 0000",
            address="1 Harley Street, London W1G 9QD",
            sla_default_days=5,
            subscription_tier=SubscriptionTier.GROWTH.value,
        )
        db.add(clinic)
        db.flush()

    password_hash = hash_password(password)
    for email, first_name, last_name, role in DEMO_USERS:
        if db.query(User).filter(User.email == email).first():
            continue
        db.add(
            User(
                clinic_id=clinic.id,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                role=role.value,
            )
        )
    db.flush()
    return clinic


def seed_all(db: Session) -> Clinic:
    insurers = seed_insurers(db)
    clinic = seed_demo_clinic(db)
    db.commit()
    logger.info("Seeded %d insurers and clinic %s", len(insurers), clinic.id)
    return clinic
