# dynforms/forms/base.py
"""
Formularios ligados a objetos SQLAlchemy.

Un Form guarda opciones, formularios embebidos (sub-árboles) y el estado del
último bind. ModelForm envuelve una instancia mapeada y valida sus campos
escalares con un schema de pydantic; los embebidos se validan con la porción
correspondiente de los valores.

A diferencia de otras librerías de formularios, embed_form() se permite en
cualquier momento (incluso después de bind): el reconciliador re-embebe
relaciones justo antes de validar.
"""
from collections.abc import Mapping
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm.attributes import flag_dirty

from dynforms.forms.errors import ConfigurationError, EmbeddedFormNotFound, InvalidSubmission

# "modulo.Clase" -> clase, para resolver "<Modelo>Form"
FORM_CLASSES: Dict[str, type] = {}


def get_form_class(name: str) -> Optional[type]:
    """
    Busca por ruta completa ("dynforms.forms.catalogo.SubmoduloForm") o por
    nombre corto; un nombre corto con más de una clase registrada es un error.
    """
    if name in FORM_CLASSES:
        return FORM_CLASSES[name]

    matches = [cls for key, cls in FORM_CLASSES.items() if key.rsplit(".", 1)[-1] == name]
    if len(matches) > 1:
        raise ConfigurationError(
            f'Hay varias clases de formulario llamadas "{name}": '
            + ", ".join(f"{cls.__module__}.{cls.__qualname__}" for cls in matches)
        )
    return matches[0] if matches else None


class Form:
    def __init__(self, **options):
        self.options: Dict[str, Any] = dict(options)
        self.embedded_forms: Dict[Any, "Form"] = {}
        self.is_bound = False
        self.tainted_values = None
        self.errors: Dict[str, Any] = {}
        self.configure()

    def configure(self) -> None:
        """Hook para embeber relaciones al construir el formulario."""

    # -------------------------
    # opciones
    # -------------------------
    def get_option(self, name: str, default=None):
        return self.options.get(name, default)

    def set_option(self, name: str, value) -> None:
        self.options[name] = value

    # -------------------------
    # embebidos
    # -------------------------
    def embed_form(self, name, form: "Form") -> None:
        # reemplaza lo que hubiera con ese nombre, sin importar si ya hubo bind
        self.embedded_forms[name] = form

    def get_embedded_form(self, name) -> "Form":
        try:
            return self.embedded_forms[name]
        except KeyError:
            raise EmbeddedFormNotFound(name) from None

    def get_embedded_forms(self) -> Dict[Any, "Form"]:
        return self.embedded_forms

    def remove_embedded_form(self, name) -> None:
        self.embedded_forms.pop(name, None)

    def has_field(self, name) -> bool:
        return name in self.embedded_forms

    # -------------------------
    # ciclo de vida
    # -------------------------
    def filter_values(self, values):
        return values

    def bind(self, values) -> bool:
        values = self.filter_values(values if values is not None else {})
        self.tainted_values = values
        self.is_bound = True
        self.errors = self.validate(values)
        return self.is_valid()

    def is_valid(self) -> bool:
        return self.is_bound and not self.errors

    def validate(self, values) -> Dict[str, Any]:
        errors = {}
        for name, form in self.embedded_forms.items():
            sub_errors = form.validate(_slice(values, name))
            if sub_errors:
                errors[str(name)] = sub_errors
        return errors

    def to_dict(self):
        return {str(name): form.to_dict() for name, form in self.embedded_forms.items()}


class FormCollection(Form):
    """Contenedor ordenado de formularios hijos, indexado por posición."""

    def __len__(self):
        return len(self.embedded_forms)

    def __iter__(self):
        return iter(self.embedded_forms.values())

    def __getitem__(self, index):
        return self.get_embedded_form(index)

    def validate(self, values) -> Dict[str, Any]:
        rows = as_rows(values)
        errors = {}
        for i, form in self.embedded_forms.items():
            row = rows[i] if i < len(rows) else {}
            sub_errors = form.validate(row)
            if sub_errors:
                errors[str(i)] = sub_errors
        return errors

    def to_dict(self):
        return [form.to_dict() for form in self.embedded_forms.values()]

    def update_objects(self) -> None:
        for form in self.embedded_forms.values():
            form.update_objects()

    def iter_objects(self):
        for form in self.embedded_forms.values():
            yield from form.iter_objects()


class ModelForm(Form):
    model: Optional[type] = None
    schema: Optional[Type[BaseModel]] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        FORM_CLASSES[f"{cls.__module__}.{cls.__qualname__}"] = cls

    def __init__(self, obj=None, **options):
        if obj is None:
            if self.model is None:
                raise TypeError(f"{type(self).__name__} necesita un objeto o un 'model'.")
            obj = self.model()
        self.obj = obj
        self.cleaned_data: Optional[BaseModel] = None
        super().__init__(**options)

    @classmethod
    def declares_field(cls, name: str) -> bool:
        return cls.schema is not None and name in cls.schema.model_fields

    def has_field(self, name) -> bool:
        return self.declares_field(name) or super().has_field(name)

    def get_object(self):
        return self.obj

    def validate(self, values) -> Dict[str, Any]:
        values = values if isinstance(values, Mapping) else {}
        errors: Dict[str, Any] = {}

        if self.schema is not None:
            scalar = {k: v for k, v in values.items() if k in self.schema.model_fields}
            try:
                self.cleaned_data = self.schema.model_validate(scalar)
            except ValidationError as e:
                self.cleaned_data = None
                for err in e.errors():
                    key = str(err["loc"][0]) if err["loc"] else "__all__"
                    errors.setdefault(key, []).append(err["msg"])

        errors.update(super().validate(values))
        return errors

    def to_dict(self):
        out = {}
        if self.schema is not None:
            for name in self.schema.model_fields:
                out[name] = getattr(self.obj, name, None)
        out.update(super().to_dict())
        return out

    # -------------------------
    # persistencia
    # -------------------------
    def update_objects(self) -> None:
        """Copia los valores validados al objeto (y a los embebidos)."""
        if self.cleaned_data is not None:
            data = self.cleaned_data.model_dump(exclude_unset=True, exclude={"id"})
            for k, v in data.items():
                setattr(self.obj, k, v)

        for form in self.embedded_forms.values():
            form.update_objects()

    def iter_objects(self):
        yield self.obj
        for form in self.embedded_forms.values():
            yield from form.iter_objects()

    def save(self, session):
        if not self.is_valid():
            raise ValueError(f"{type(self).__name__} no es válido; llama a bind() primero.")

        self.update_objects()
        session.add(self.obj)

        # forzar que el flush pase por before_flush aunque solo se quiten filas
        for obj in self.iter_objects():
            flag_dirty(obj)

        session.flush()
        return self.obj


def as_rows(value) -> list:
    """
    Filas como lista, o como {"0": {...}, "1": {...}} (formularios HTML).
    None es "sin filas"; cualquier otra cosa es un envío inválido.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Mapping):
        try:
            keys = sorted(value, key=int)
        except (TypeError, ValueError):
            raise InvalidSubmission(
                f"Las filas deben indexarse por posición; claves recibidas: {list(value)}"
            ) from None
        return [value[k] for k in keys]
    raise InvalidSubmission(f"Se esperaba una lista de filas, se recibió {type(value).__name__}.")


def _slice(values, name):
    if isinstance(values, Mapping):
        return values.get(name, [])
    return []
