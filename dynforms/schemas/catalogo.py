# dynforms/schemas/catalogo.py
from typing import Optional
from pydantic import BaseModel, Field


# "id" es obligatorio en todo schema que se embeba como relación dinámica
class SubprogramaIn(BaseModel):
    id: Optional[int] = None
    nombre: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    orden: int = Field(ge=0)


class SubmoduloIn(BaseModel):
    id: Optional[int] = None
    nombre: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    orden: int = Field(ge=0)


class EvidenciaItemIn(BaseModel):
    id: Optional[int] = None
    orden: int = Field(ge=0)
    titulo: str = Field(min_length=1)


class ResponsableIn(BaseModel):
    id: Optional[int] = None
    nombre: str = Field(min_length=1, max_length=255)
    email: Optional[str] = None


class SubprogramaOut(BaseModel):
    id: int
    nombre: str
    slug: str
    orden: int

    class Config:
        from_attributes = True
