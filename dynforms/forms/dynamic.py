# dynforms/forms/dynamic.py
"""
Relaciones "has-many" embebidas dinámicamente en un ModelForm.

- embed_dynamic_relation(): registra la relación en el formulario y la embebe
  con los objetos relacionados actuales.
- embed_field(): (re)construye la colección de formularios hijos a partir de
  objetos o de filas enviadas ({id?, ...atributos}).
- reconcile(): antes de validar, re-embebe todas las relaciones (recursivo)
  para que los hijos reflejen exactamente lo enviado.

El borrado de filas quitadas lo hace dynforms.forms.listener al hacer flush.
"""
import logging
from collections.abc import Mapping
from contextlib import nullcontext
from typing import Optional

from sqlalchemy.orm import object_session

from dynforms.forms.base import FormCollection, ModelForm, as_rows, get_form_class
from dynforms.forms.errors import (
    ConfigurationError,
    EmbeddedFormNotFound,
    InvalidSubmission,
    RelatedFormNotFound,
)
from dynforms.forms.listener import attach_listener
from dynforms.forms.relations import (
    ID_FIELD,
    OPTION,
    RelationConfig,
    RelationDescriptor,
    parse_relation_spec,
)

log = logging.getLogger("dynforms.forms")


def _resolve_form_class(relation: RelationDescriptor, form_class):
    if form_class is None:
        form_class = f"{relation.target.__name__}Form"
    if isinstance(form_class, str):
        name = form_class
        form_class = get_form_class(name)
        if form_class is None:
            raise ConfigurationError(f'No existe la clase de formulario "{name}".')
    return form_class


def embed_dynamic_relation(form: ModelForm, relation_spec: str, form_class=None, form_args=None) -> str:
    """
    Embebe una relación to-many en `form`; devuelve el nombre de campo usado.

    `relation_spec` es "relacion" o "relacion as alias".
    """
    name, field = parse_relation_spec(relation_spec)
    relation = RelationDescriptor.resolve(type(form.obj), name)

    if not relation.to_many:
        raise ConfigurationError(
            f'La relación {type(form.obj).__name__}.{relation.key} no es una relación to-many.'
        )

    form_class = _resolve_form_class(relation, form_class)
    if not form_class.declares_field(ID_FIELD):
        raise ConfigurationError(
            f'El formulario {form_class.__name__} debe incluir un campo "{ID_FIELD}" '
            f"para embeberse como relación dinámica."
        )

    config = dict(form.get_option(OPTION) or {})
    config[field] = RelationConfig(relation=relation, form_class=form_class, form_args=dict(form_args or {}))
    form.set_option(OPTION, config)

    attach_listener(form)

    log.debug("embed %s.%s como campo '%s' (%s)", type(form.obj).__name__, relation.key, field, form_class.__name__)
    embed_field(form, field, list(relation.collection(form.obj)))
    return field


def find_embedded_form_by_id(form: ModelForm, field: str, identifier) -> Optional[ModelForm]:
    try:
        container = form.get_embedded_form(field)
    except EmbeddedFormNotFound:
        return None

    for child in container.get_embedded_forms().values():
        current = getattr(child.obj, ID_FIELD, None)
        if current is not None and str(current) == str(identifier):
            return child
    return None


# 0 y "0" cuentan como "sin id": la fila es nueva
_EMPTY_IDS = (None, "", 0, "0")


def _has_identifier(row: Mapping) -> bool:
    return row.get(ID_FIELD) not in _EMPTY_IDS


def embed_field(form: ModelForm, field: str, values) -> FormCollection:
    """Reemplaza el embebido `field` con un formulario hijo por cada valor, en orden."""
    config: RelationConfig = form.get_option(OPTION)[field]
    relation = config.relation

    session = object_session(form.obj)
    guard = session.no_autoflush if session is not None else nullcontext()

    values = list(values or [])
    # antes de tocar la colección: cada fila es un objeto destino o un mapping
    for i, value in enumerate(values):
        if not isinstance(value, (relation.target, Mapping)):
            raise InvalidSubmission(
                f'La fila {i} de "{field}" debe ser un objeto con atributos, '
                f"se recibió {type(value).__name__}.",
                field=field,
            )

    container = FormCollection()
    with guard:
        for i, value in enumerate(values):
            if isinstance(value, relation.target):
                child = config.build_form(value)
            elif _has_identifier(value):
                child = find_embedded_form_by_id(form, field, value[ID_FIELD])
                if child is None:
                    raise RelatedFormNotFound(field, value[ID_FIELD])
            else:
                obj = relation.create(value, config.declared_fields())
                relation.collection(form.obj).append(obj)
                child = config.build_form(obj)

            if i == 0 and not child.has_field(ID_FIELD):
                raise ConfigurationError(
                    f'El formulario {type(child).__name__} debe incluir un campo "{ID_FIELD}" '
                    f"para embeberse como relación dinámica."
                )

            container.embed_form(i, child)

    form.embed_form(field, container)
    return container


def reconcile(form, values) -> None:
    """
    Re-embebe recursivamente las relaciones dinámicas de `form` según `values`.

    Por cada campo: primero se reconstruye el campo completo y luego se baja a
    cada hijo con su porción de valores, antes de pasar al siguiente campo.
    """
    relations = form.get_option(OPTION)
    if not relations:
        return

    values = values if isinstance(values, Mapping) else {}

    for field in list(relations):
        try:
            rows = as_rows(values.get(field))
        except InvalidSubmission as e:
            raise InvalidSubmission(f'"{field}": {e}', field=field) from None
        container = embed_field(form, field, rows)
        log.debug("reconcile %s.%s: %d filas", type(form.obj).__name__, field, len(container))

        for i, child in container.get_embedded_forms().items():
            row = rows[i] if i < len(rows) else {}
            reconcile(child, row if isinstance(row, Mapping) else {})


class EmbeddableRelationForm(ModelForm):
    """ModelForm que puede embeber relaciones has-many dinámicas."""

    def embed_dynamic_relation(self, relation_spec: str, form_class=None, form_args=None) -> str:
        return embed_dynamic_relation(self, relation_spec, form_class, form_args)

    def get_dynamic_relations(self):
        return dict(self.get_option(OPTION) or {})

    def filter_values(self, values):
        reconcile(self, values)
        return values
