# dynforms/models/catalogo.py
from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, BigInteger
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from dynforms.db.base import Base


class Subprograma(Base):
    __tablename__ = "subprogramas"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    orden = Column(Integer, nullable=False)

    # Sin delete-orphan: el borrado de submódulos quitados del formulario
    # lo hace el listener de relaciones dinámicas (FK NOT NULL)
    submodulos = relationship(
        "Submodulo",
        back_populates="subprograma",
        cascade="all",
        order_by="Submodulo.orden",
    )


class Submodulo(Base):
    __tablename__ = "submodulos"

    id = Column(Integer, primary_key=True)
    subprograma_id = Column(Integer, ForeignKey("subprogramas.id", ondelete="CASCADE"), nullable=False)
    nombre = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    orden = Column(Integer, nullable=False)

    subprograma = relationship("Subprograma", back_populates="submodulos")

    #  evidencias del catálogo
    evidencias = relationship(
        "EvidenciaItem",
        back_populates="submodulo",
        cascade="all",
        order_by="EvidenciaItem.orden",
    )

    # responsables asignados (FK nullable: al quitarlos quedan sin asignar)
    responsables = relationship("Responsable", back_populates="submodulo")


class EvidenciaItem(Base):
    __tablename__ = "evidencia_item"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)

    submodulo_id = Column(Integer, ForeignKey("submodulos.id", ondelete="CASCADE"), nullable=False)
    orden = Column(Integer, nullable=False)
    titulo = Column(Text, nullable=False)

    created_at = Column(DateTime, nullable=False, server_default=func.now())

    submodulo = relationship("Submodulo", back_populates="evidencias")


class Responsable(Base):
    __tablename__ = "responsables"

    id = Column(Integer, primary_key=True)
    submodulo_id = Column(Integer, ForeignKey("submodulos.id", ondelete="SET NULL"), nullable=True)
    nombre = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)

    submodulo = relationship("Submodulo", back_populates="responsables")
