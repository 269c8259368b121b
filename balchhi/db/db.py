import os
from sqlmodel import Session, SQLModel, create_engine

# Register every table on SQLModel.metadata
from balchhi.models import (  # noqa: F401
    call_log,
    claim,
    evidence,
    handover,
    item,
    notification,
    organization,
    organization_contact,
    organization_member,
    organization_verification,
    user,
    verification_audit,
)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./balchhi.db")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args)


def create_db_and_tables():
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
