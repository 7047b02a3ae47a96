# dynforms/routes/catalogo.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dynforms.db.session import get_db
from dynforms.forms.catalogo import SubprogramaForm
from dynforms.forms.errors import InvalidSubmission
from dynforms.models.catalogo import Subprograma
from dynforms.schemas.catalogo import SubprogramaOut

log = logging.getLogger("dynforms.api")

router = APIRouter(prefix="/catalogo", tags=["Catálogo"])


def _get_subprograma(subprograma_id: int, db: Session) -> Subprograma:
    sp = db.get(Subprograma, subprograma_id)
    if not sp:
        raise HTTPException(status_code=404, detail=f"Subprograma no encontrado: {subprograma_id}")
    return sp


def _bind_and_save(form: SubprogramaForm, payload: Dict[str, Any], db: Session):
    """
    bind => reconciliación de relaciones + validación; luego save + commit.
    - id desconocido o filas con forma inválida => 400
    - valores inválidos => 422 con el árbol de errores
    """
    try:
        valid = form.bind(payload)
    except InvalidSubmission as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    if not valid:
        db.rollback()
        raise HTTPException(status_code=422, detail={"errors": form.errors})

    try:
        form.save(db)
        db.commit()
        db.refresh(form.obj)
    except SQLAlchemyError as e:
        db.rollback()
        log.error("Error guardando subprograma: %s", e)
        raise HTTPException(status_code=500, detail=f"Error guardando subprograma: {str(e)}")

    return form.to_dict()


@router.get("/subprogramas", response_model=list[SubprogramaOut])
def subprogramas(db: Session = Depends(get_db)):
    return db.query(Subprograma).order_by(Subprograma.orden.asc()).all()


@router.get("/subprogramas/{subprograma_id}/form")
def subprograma_form(subprograma_id: int, db: Session = Depends(get_db)):
    sp = _get_subprograma(subprograma_id, db)
    return SubprogramaForm(sp).to_dict()


@router.post("/subprogramas", status_code=201)
def crear_subprograma(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    form = SubprogramaForm()
    return _bind_and_save(form, payload, db)


@router.put("/subprogramas/{subprograma_id}")
def actualizar_subprograma(
    subprograma_id: int,
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
):
    sp = _get_subprograma(subprograma_id, db)
    form = SubprogramaForm(sp)
    return _bind_and_save(form, payload, db)
