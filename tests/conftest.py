import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from balchhi.db.db import get_session  # noqa: E402
from balchhi.main import app  # noqa: E402
from balchhi.models.item import Item  # noqa: E402
from balchhi.models.organization import Organization  # noqa: E402
from balchhi.models.organization_member import OrganizationMember  # noqa: E402
from balchhi.models.organization_verification import OrganizationVerification  # noqa: E402
from balchhi.models.user import User  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    app.dependency_overrides[get_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(name="user", role="user"):
        user = User(
            public_id=f"{name}-{uuid.uuid4().hex[:8]}",
            name=name,
            email=f"{name}@example.com",
            role=role,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_item(session):
    def _make_item(owner, status="active", organization=None, item_type="found"):
        item = Item(
            user_id=owner.id,
            organization_id=organization.id if organization else None,
            title="Black leather wallet",
            category="keys-wallets",
            description="Found near Ratna Park bus stop in the evening",
            location="Ratna Park",
            type=item_type,
            status=status,
        )
        session.add(item)
        session.commit()
        session.refresh(item)
        return item

    return _make_item


@pytest.fixture
def make_org(session):
    def _make_org(admin, status="draft", name="Kathmandu Metro Police"):
        approved = status == "approved"
        organization = Organization(
            admin_id=admin.id,
            name=name,
            type="police_station",
            contact_email="info@ktm.nepalpolice.gov.np",
            contact_phone="01-4200000",
            location="Kathmandu",
            address="Hanumandhoka",
            verification_status=status,
            is_verified=approved,
            can_post_items=approved,
            can_manage_claims=approved,
        )
        session.add(organization)
        session.flush()

        session.add(OrganizationMember(
            organization_id=organization.id,
            user_id=admin.id,
            role="admin",
            member_role="org_owner",
        ))
        session.commit()
        session.refresh(organization)
        return organization

    return _make_org


@pytest.fixture
def add_member(session):
    def _add_member(organization, user, member_role="org_staff", is_active=True):
        member = OrganizationMember(
            organization_id=organization.id,
            user_id=user.id,
            member_role=member_role,
            is_active=is_active,
        )
        session.add(member)
        session.commit()
        session.refresh(member)
        return member

    return _add_member


@pytest.fixture
def make_verification(session):
    def _make_verification(organization, status="draft", **overrides):
        fields = dict(
            registered_name="Kathmandu Metropolitan Police Range",
            registration_type="police_unit",
            registration_number="KMP-0042",
            province="Bagmati",
            district="Kathmandu",
            municipality="Kathmandu Metropolitan City",
            official_email="range@ktm.nepalpolice.gov.np",
            official_phone="01-4200000",
        )
        fields.update(overrides)
        verification = OrganizationVerification(
            organization_id=organization.id,
            verification_status=status,
            **fields,
        )
        session.add(verification)
        session.commit()
        session.refresh(verification)
        return verification

    return _make_verification


def auth_headers(user):
    token = jwt.encode({"sub": user.public_id}, os.environ["JWT_SECRET"], algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    return auth_headers
