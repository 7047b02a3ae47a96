import os

# dynforms.db.session lee DATABASE_URL al importarse
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dynforms.db.base import Base
from dynforms.db.session import get_db
from dynforms.main import app
from dynforms.models.catalogo import EvidenciaItem, Responsable, Submodulo, Subprograma


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    # autoflush activo a propósito: la reconciliación no debe disparar flushes
    return sessionmaker(bind=engine, autoflush=True, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seeded(session_factory):
    """
    Subprograma 1
      - Submodulo 1 (evidencias 1, 2; responsables 1, 2)
      - Submodulo 2
    """
    with session_factory() as s:
        sp = Subprograma(id=1, nombre="Docencia", slug="docencia", orden=1)
        sm1 = Submodulo(id=1, nombre="Modelo educativo", slug="modelo_educativo", orden=1)
        sm2 = Submodulo(id=2, nombre="Oferta académica", slug="oferta_academica", orden=2)
        sm1.evidencias = [
            EvidenciaItem(id=1, orden=1, titulo="Documento del modelo"),
            EvidenciaItem(id=2, orden=2, titulo="Resolución de aprobación"),
        ]
        sm1.responsables = [
            Responsable(id=1, nombre="Ana", email="ana@example.com"),
            Responsable(id=2, nombre="Luis"),
        ]
        sp.submodulos = [sm1, sm2]
        s.add(sp)
        s.commit()
    return 1


@pytest.fixture()
def client(session_factory, seeded):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)

