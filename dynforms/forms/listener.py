# dynforms/forms/listener.py
"""
Borrado de objetos relacionados que ya no están en el formulario.

Cada objeto padre lleva (a lo sumo) un DynamicRelationsListener guardado en
su InstanceState.info. Un único handler before_flush en Session recorre los
objetos del flush que tienen listener y ejecuta pre_save().

Se usa before_flush y no before_update: el padre puede no estar "dirty"
aunque se hayan quitado filas del formulario.
"""
import logging

from sqlalchemy import event, inspect as sa_inspect
from sqlalchemy.orm import Session

from dynforms.forms.errors import EmbeddedFormNotFound
from dynforms.forms.relations import OPTION

log = logging.getLogger("dynforms.forms")

LISTENER_KEY = "dynforms.dynamic_relations_listener"


class DynamicRelationsListener:
    def __init__(self, form):
        self.form = form

    def _kept_objects(self, field):
        try:
            container = self.form.get_embedded_form(field)
        except EmbeddedFormNotFound:
            # sin embebido para el campo => no se conserva ninguna fila
            log.warning(
                "%s: no hay formularios embebidos en '%s'; se quitan todas las filas relacionadas",
                type(self.form).__name__, field,
            )
            return {}

        return {id(child.obj): child.obj for child in container.get_embedded_forms().values()}

    def pre_save(self, session: Session, obj) -> None:
        relations = self.form.get_option(OPTION) or {}
        log.debug("pre-save relaciones dinámicas de %r", obj)

        for field, config in relations.items():
            relation = config.relation
            collection = relation.collection(obj)
            kept = self._kept_objects(field)

            for related in list(collection):
                if id(related) in kept:
                    continue

                # existe en el objeto pero no en el formulario => se quitó
                collection.remove(related)

                state = sa_inspect(related)
                if state.pending or state.transient:
                    # nunca se guardó: basta con sacarlo de la sesión
                    if related in session:
                        session.expunge(related)
                elif not relation.foreign_key_nullable:
                    log.info("borrando %r (FK NOT NULL en %s)", related, relation.key)
                    session.delete(related)
                else:
                    log.info("desvinculando %r de %s", related, relation.key)


def get_listener(obj):
    return sa_inspect(obj).info.get(LISTENER_KEY)


def attach_listener(form) -> DynamicRelationsListener:
    """Registra el listener del objeto del formulario una sola vez."""
    info = sa_inspect(form.obj).info
    listener = info.get(LISTENER_KEY)
    if listener is None:
        listener = DynamicRelationsListener(form)
        info[LISTENER_KEY] = listener
    elif listener.form is not form:
        # otro formulario sobre el mismo objeto: manda el más reciente
        listener.form = form
    return listener


@event.listens_for(Session, "before_flush")
def _process_dynamic_relations(session, flush_context, instances):
    candidates = list(session.new) + list(session.identity_map.values())
    seen = set()
    for obj in candidates:
        if id(obj) in seen:
            continue
        seen.add(id(obj))

        listener = get_listener(obj)
        if listener is None or obj not in session or obj in session.deleted:
            continue
        listener.pre_save(session, obj)
