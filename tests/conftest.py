import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db import Base
from app.models.organization import Organization, User, UserRole
from app.services.file_fetch import FileFetcher
from app.services.workflow import build_workflow
from app.services.workflow_config import WorkflowConfig
from tests.helpers import PDF_BYTES, PDF_URL, document_payload, sqlite_engine, unique_email
from tests.mocks import FakeDispatcher, FakeHTTPXClient, FakeHTTPXResponse


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = sqlite_engine(poolclass=StaticPool)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def organization(db_session):
    org = Organization(name="Acme Legal", slug=f"acme-{uuid.uuid4().hex[:8]}", settings={})
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture()
def user(db_session, organization):
    sender = User(
        organization_id=organization.id,
        email=unique_email("sender"),
        full_name="Sam Sender",
        role=UserRole.owner,
    )
    db_session.add(sender)
    db_session.commit()
    return sender


@pytest.fixture()
def other_user(db_session):
    org = Organization(name="Other Co", slug=f"other-{uuid.uuid4().hex[:8]}", settings={})
    db_session.add(org)
    db_session.flush()
    outsider = User(organization_id=org.id, email=unique_email("outsider"), full_name="Olive")
    db_session.add(outsider)
    db_session.commit()
    return outsider


@pytest.fixture()
def workflow_config():
    return WorkflowConfig(app_url="https://sign.example.com/")


@pytest.fixture()
def dispatcher():
    return FakeDispatcher()


@pytest.fixture()
def http_client():
    return FakeHTTPXClient({PDF_URL: FakeHTTPXResponse(content=PDF_BYTES)})


@pytest.fixture()
def fetcher(workflow_config, http_client):
    return FileFetcher(workflow_config.storage, client=http_client)


@pytest.fixture()
def workflow(workflow_config, dispatcher, fetcher):
    return build_workflow(workflow_config, dispatcher=dispatcher, fetcher=fetcher)


@pytest.fixture()
def make_document(db_session, user, workflow):
    def _make(**kwargs):
        send = kwargs.pop("send", False)
        document = workflow.documents.create(db_session, user, document_payload(**kwargs))
        if send:
            workflow.documents.send(db_session, user, document.id)
        return document

    return _make

