# dynforms/forms/relations.py
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import MANYTOMANY, ONETOMANY

from dynforms.forms.errors import ConfigurationError

ID_FIELD = "id"

# opción del formulario donde se guarda {campo: RelationConfig}
OPTION = "dynamic_relations"

_CAMEL_1 = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_2 = re.compile(r"([a-z\d])([A-Z])")


def underscore(name: str) -> str:
    """ "SubModulos" -> "sub_modulos" (convención de nombres de campo)."""
    name = _CAMEL_1.sub(r"\1_\2", name)
    name = _CAMEL_2.sub(r"\1_\2", name)
    return name.replace("-", "_").lower()


def parse_relation_spec(relation_spec: str):
    """
    "nombre"            -> ("nombre", "nombre")
    "nombre as alias"   -> ("nombre", "alias")
    """
    m = re.match(r"^\s*(\S+)\s+as\s+(\S+)\s*$", relation_spec, flags=re.IGNORECASE)
    if m:
        return m.group(1), m.group(2)
    name = relation_spec.strip()
    return name, underscore(name)


@dataclass(frozen=True)
class RelationDescriptor:
    key: str
    target: type
    to_many: bool
    foreign_key_nullable: bool

    @classmethod
    def resolve(cls, model: type, name: str) -> "RelationDescriptor":
        mapper = sa_inspect(model)
        if name not in mapper.relationships:
            raise ConfigurationError(f'El modelo {model.__name__} no tiene una relación "{name}".')

        prop = mapper.relationships[name]
        to_many = bool(prop.uselist) and prop.direction in (ONETOMANY, MANYTOMANY)

        if prop.direction is ONETOMANY:
            # columnas FK del lado "muchos" (la tabla destino)
            fk_columns = [remote for _local, remote in prop.local_remote_pairs]
            nullable = any(col.nullable for col in fk_columns)
        else:
            # many-to-many: quitar solo borra la fila de asociación
            nullable = True

        return cls(
            key=prop.key,
            target=prop.mapper.class_,
            to_many=to_many,
            foreign_key_nullable=nullable,
        )

    def collection(self, obj):
        return getattr(obj, self.key)

    def create(self, row: Mapping, fields: Iterable[str] = ()):
        """
        Crea un objeto destino nuevo con los valores de la fila.

        Solo se copian los campos que declara el formulario hijo (`fields`) y
        que además son columnas mapeadas; nunca el id.
        """
        obj = self.target()
        columns = set(sa_inspect(self.target).column_attrs.keys())
        allowed = (set(fields) & columns) - {ID_FIELD}
        for k, v in row.items():
            if k in allowed:
                setattr(obj, k, v)
        return obj


@dataclass
class RelationConfig:
    relation: RelationDescriptor
    form_class: type
    form_args: Dict[str, Any] = field(default_factory=dict)

    def build_form(self, obj):
        return self.form_class(obj, **self.form_args)

    def declared_fields(self):
        schema = getattr(self.form_class, "schema", None)
        return list(schema.model_fields) if schema is not None else []
