import os
import tempfile

# Settings are read once at import time, so the environment has to be in
# place before anything from smsi is imported.
_tmpdir = tempfile.mkdtemp(prefix="smsi-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "1000"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from smsi.core.database import SessionLocal, engine
from smsi.core.security import create_token
from smsi.main import app
from smsi.models.orm import Base, Module, Quiz
from smsi.services.users import create_user

PASSWORD = "Str0ng!Pass"


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    if app.state.rate_limiter is not None:
        app.state.rate_limiter.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def learner(db):
    return create_user(db, "Lena Learner", "lena@example.com", PASSWORD, role="user", consent_rgpd=True)


@pytest.fixture
def admin(db):
    return create_user(db, "Ada Admin", "ada@example.com", PASSWORD, role="admin", consent_rgpd=True)


def bearer(user) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id, user.email, user.role)}"}


@pytest.fixture
def learner_headers(learner):
    return bearer(learner)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def module(db):
    """An active module with two questions worth 1 and 2 points."""
    m = Module(
        title="Phishing Basics",
        description="Spotting phishing emails",
        content="Phishing emails try to trick you into revealing credentials or installing malware.",
        duration_minutes=30,
        difficulty_level="beginner",
        is_active=True,
    )
    db.add(m)
    db.commit()
    db.refresh(m)
    db.add_all([
        Quiz(module_id=m.id, question="Check the sender?", options=["Yes", "No"], correct_option=0,
             explanation="Always check the sender.", points=1),
        Quiz(module_id=m.id, question="Click unknown links?", options=["Yes", "No", "Maybe"], correct_option=1,
             explanation="Never click unknown links.", points=2),
    ])
    db.commit()
    db.refresh(m)
    return m


@pytest.fixture
def questions(db, module):
    return list(module.quizzes)
