import logging

import pytest

from dynforms.forms.catalogo import SubmoduloForm, SubprogramaForm
from dynforms.forms.listener import attach_listener, get_listener
from dynforms.models.catalogo import EvidenciaItem, Responsable, Submodulo, Subprograma


def _sm(id_=None, nombre="Submódulo", slug="submodulo", orden=1, **extra):
    row = {"nombre": nombre, "slug": slug, "orden": orden}
    if id_ is not None:
        row["id"] = id_
    row.update(extra)
    return row


def _payload(submodulos):
    return {"id": 1, "nombre": "Docencia", "slug": "docencia", "orden": 1, "submodulos": submodulos}


# filas completas del submódulo 1 para no tocar sus relaciones
SM1_FULL = _sm(
    1,
    nombre="Modelo educativo",
    slug="modelo_educativo",
    evidencias=[
        {"id": 1, "orden": 1, "titulo": "Documento del modelo"},
        {"id": 2, "orden": 2, "titulo": "Resolución de aprobación"},
    ],
    responsables=[{"id": 1, "nombre": "Ana"}, {"id": 2, "nombre": "Luis"}],
)


@pytest.fixture()
def sp(db, seeded):
    return db.get(Subprograma, seeded)


def _save(form, db, payload):
    assert form.bind(payload), form.errors
    form.save(db)
    db.commit()


def test_dropped_row_with_not_null_fk_is_deleted(sp, db):
    form = SubprogramaForm(sp)

    _save(form, db, _payload([SM1_FULL]))

    assert db.get(Submodulo, 2) is None
    assert [s.id for s in db.get(Subprograma, 1).submodulos] == [1]
    assert db.query(EvidenciaItem).count() == 2
    assert db.query(Responsable).count() == 2


def test_dropped_row_with_nullable_fk_is_only_detached(sp, db):
    sm1 = db.get(Submodulo, 1)
    form = SubmoduloForm(sm1)

    _save(form, db, {
        "id": 1, "nombre": "Modelo educativo", "slug": "modelo_educativo", "orden": 1,
        "evidencias": [{"id": 2, "orden": 1, "titulo": "Resolución de aprobación"}],
        "responsables": [{"id": 1, "nombre": "Ana"}],
    })

    # evidencias: FK NOT NULL => borrada
    assert db.get(EvidenciaItem, 1) is None
    assert db.get(EvidenciaItem, 2).orden == 1

    # responsables: FK nullable => queda sin submódulo
    luis = db.get(Responsable, 2)
    assert luis is not None
    assert luis.submodulo_id is None
    assert [r.id for r in db.get(Submodulo, 1).responsables] == [1]


def test_new_rows_are_inserted_in_submission_order(sp, db):
    form = SubprogramaForm(sp)

    _save(form, db, _payload([
        _sm(2, nombre="Oferta académica", slug="oferta_academica", orden=1),
        _sm(nombre="Nuevo", slug="nuevo", orden=2, evidencias=[{"orden": 1, "titulo": "Primera"}]),
        dict(SM1_FULL, orden=3),
    ]))

    db.expire_all()
    sp = db.get(Subprograma, 1)
    assert [s.slug for s in sp.submodulos] == ["oferta_academica", "nuevo", "modelo_educativo"]

    nuevo = sp.submodulos[1]
    assert nuevo.id is not None
    assert [e.titulo for e in nuevo.evidencias] == ["Primera"]


def test_nested_rows_removed_deep_in_the_tree(sp, db):
    form = SubprogramaForm(sp)

    _save(form, db, _payload([
        _sm(1, nombre="Modelo educativo", slug="modelo_educativo",
            evidencias=[{"id": 2, "orden": 1, "titulo": "Resolución"}, {"orden": 2, "titulo": "Nueva"}],
            responsables=[{"id": 1, "nombre": "Ana"}]),
        _sm(2, nombre="Oferta académica", slug="oferta_academica", orden=2),
    ]))

    assert db.get(EvidenciaItem, 1) is None
    assert [e.titulo for e in db.get(Submodulo, 1).evidencias] == ["Resolución", "Nueva"]
    assert db.get(Responsable, 2).submodulo_id is None
    assert db.get(Submodulo, 2) is not None


def test_pending_row_dropped_before_save_is_never_inserted(sp, db):
    form = SubprogramaForm(sp)

    assert form.bind(_payload([SM1_FULL, _sm(2), _sm(nombre="Temporal", slug="temporal")]))
    _save(form, db, _payload([SM1_FULL, _sm(2)]))

    assert db.query(Submodulo).count() == 2
    assert db.query(Submodulo).filter(Submodulo.slug == "temporal").count() == 0


def test_listener_attached_twice_runs_one_pass_per_save(sp, db, caplog):
    form = SubprogramaForm(sp)
    listener = attach_listener(form)
    assert attach_listener(form) is listener
    assert get_listener(sp) is listener

    caplog.set_level(logging.DEBUG, logger="dynforms.forms")
    _save(form, db, _payload([SM1_FULL]))

    passes = [r for r in caplog.records if r.getMessage().startswith("pre-save") and "Subprograma" in r.getMessage()]
    assert len(passes) == 1
    assert db.get(Submodulo, 2) is None


def test_second_form_on_same_object_takes_over_listener(sp, db):
    first = SubprogramaForm(sp)
    second = SubprogramaForm(sp)

    listener = get_listener(sp)
    assert listener.form is second

    assert attach_listener(first) is listener
    assert listener.form is first


def test_missing_embedding_removes_every_related_row(sp, db, caplog):
    form = SubprogramaForm(sp)
    assert form.bind(_payload([SM1_FULL, _sm(2)]))
    form.remove_embedded_form("submodulos")

    caplog.set_level(logging.WARNING, logger="dynforms.forms")
    form.save(db)
    db.commit()

    assert db.query(Submodulo).count() == 0
    assert any("no hay formularios embebidos en 'submodulos'" in r.getMessage() for r in caplog.records)


def test_objects_without_listener_are_ignored(db, seeded):
    sp = db.get(Subprograma, seeded)
    sp.nombre = "Docencia (editado)"
    db.commit()

    assert db.query(Submodulo).count() == 2
    assert get_listener(sp) is None


def test_removal_only_submission_still_runs_deletion_pass(sp, db, caplog):
    caplog.set_level(logging.DEBUG, logger="dynforms.forms")
    form = SubprogramaForm(sp)

    # mismo valor para todo: solo cambia qué filas vienen
    _save(form, db, _payload([SM1_FULL]))

    assert any(r.getMessage().startswith("pre-save") for r in caplog.records)
    assert db.query(Submodulo).count() == 1
