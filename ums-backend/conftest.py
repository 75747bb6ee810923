import pytest

import security
from db_manager import DatabaseManager
from seed import seed_data
from services import UniversityService


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    # Full-cost scrypt makes every User.create slow; correctness does not depend on n
    monkeypatch.setattr(security, "SCRYPT_N", 1024)


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def db(data_dir):
    return DatabaseManager(base_dir=data_dir)


@pytest.fixture
def seeded_db(db):
    seed_data(db)
    return db


@pytest.fixture
def service(seeded_db):
    return UniversityService(seeded_db)


@pytest.fixture
def admin(seeded_db):
    return seeded_db.find_user("admin")


@pytest.fixture
def teacher(seeded_db):
    return seeded_db.find_user_by_id("TCH001")


@pytest.fixture
def student(seeded_db):
    return seeded_db.find_user_by_id("STU001")
