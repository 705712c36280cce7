"""
Fixtures communes: base SQLite en mémoire recréée à chaque test, données
de référence (utilisateurs, tarifs, prestations, clients) et client HTTP
authentifié.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFICATIONS_PUSH_ENABLED"] = "false"

import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.database import Base, get_db
from app.modules.auth.models import User, UserMachine, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import hash_password, create_access_token
from app.modules.clients.models import Client
from app.modules.devis.models import Devis
from app.modules.devis.schemas import DevisCreate, DevisLineCreate, DevisServiceCreate
from app.modules.devis.service import DevisService
from app.modules.machines.models import MachineType, Material, FixedService
from app.modules.machines.service import MachinePricingService


# ===== BASE DE DONNÉES =====

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite: laisser SQLAlchemy piloter BEGIN pour que les SAVEPOINT fonctionnent
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# ===== UTILISATEURS =====

def _make_user(db, username, role, machines=()):
    user = User(
        username=username,
        password=hash_password("secret123"),
        first_name=username.capitalize(),
        last_name="Test",
        role=role,
        allowed_machines=[UserMachine(machine=m) for m in machines],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _context(user):
    return AuthContext(
        user_id=user.id,
        username=user.username,
        role=user.role,
        allowed_machines=user.machine_types,
    )


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin", UserRole.ADMIN)


@pytest.fixture
def employee_user(db_session):
    """Opérateur autorisé sur la CNC et le laser uniquement"""
    return _make_user(db_session, "operateur", UserRole.EMPLOYEE, [MachineType.CNC, MachineType.LASER])


@pytest.fixture
def admin_auth(admin_user):
    return _context(admin_user)


@pytest.fixture
def employee_auth(employee_user):
    return _context(employee_user)


# ===== TABLES DE PRIX =====

@pytest.fixture
def pricing(db_session):
    """CNC 1.50/min, LASER 2.00/min, CHAMPS 5.00/m, PANNEAUX 25.00/unité"""
    return MachinePricingService(db_session).initialize_default_pricing()


@pytest.fixture
def material(db_session):
    material = Material(name="MDF 18mm", price_per_unit=Decimal("35.00"), unit="plaque")
    db_session.add(material)
    db_session.commit()
    db_session.refresh(material)
    return material


@pytest.fixture
def fixed_services(db_session):
    services = {
        "design": FixedService(name="Design", price=Decimal("50.00")),
        "finition": FixedService(name="Finition", price=Decimal("100.00")),
        "installation": FixedService(name="Installation", price=Decimal("150.00")),
        "livraison": FixedService(name="Livraison", price=Decimal("30.00")),
    }
    db_session.add_all(services.values())
    db_session.commit()
    for service in services.values():
        db_session.refresh(service)
    return services


# ===== CLIENTS =====

@pytest.fixture
def sample_client(db_session):
    client = Client(name="Menuiserie Ben Salah", phone="+21698123456", email="contact@bensalah.tn")
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture
def other_client(db_session):
    client = Client(name="Déco Sfax")
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


# ===== DEVIS =====

@pytest.fixture
def make_devis(db_session, pricing, admin_auth):
    """
    Fabrique de devis: make_devis(client, lines=[{"machine_type": ..., "minutes": ...}],
    services=[FixedService], validate=True)
    """
    def _make(client, lines=(), services=(), validate=False, auth=None):
        auth = auth or admin_auth
        service = DevisService(db_session)
        devis = service.create(DevisCreate(client_id=client.id), auth)
        for line in lines:
            service.add_line(devis.id, DevisLineCreate(**line), auth)
        for fixed_service in services:
            service.add_service(devis.id, DevisServiceCreate(service_id=fixed_service.id), auth)
        if validate:
            service.validate(devis.id, admin_auth)
        db_session.expire_all()
        return db_session.get(Devis, devis.id)
    return _make


# ===== CLIENT HTTP =====

@pytest.fixture
def api(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _headers(user):
    token = create_access_token({"sub": str(user.id), "username": user.username, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def employee_headers(employee_user):
    return _headers(employee_user)
