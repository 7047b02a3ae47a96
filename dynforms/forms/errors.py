# dynforms/forms/errors.py


class DynamicRelationError(Exception):
    """Base de los errores de formularios con relaciones dinámicas."""


class ConfigurationError(DynamicRelationError):
    """
    Configuración inválida detectada al embeber:
    - la relación no existe o no es "to-many"
    - no hay clase de formulario para la relación
    - el formulario hijo no expone el campo "id"
    """


class InvalidSubmission(DynamicRelationError, ValueError):
    """Los valores enviados para una relación no tienen la forma esperada."""

    def __init__(self, message: str, field=None):
        self.field = field
        super().__init__(message)


class RelatedFormNotFound(InvalidSubmission):
    """Una fila enviada trae un id que no corresponde a ningún hijo embebido."""

    def __init__(self, field: str, identifier):
        self.identifier = identifier
        super().__init__(
            f'No se encontró un formulario embebido previamente en "{field}" con id "{identifier}".',
            field=field,
        )


class EmbeddedFormNotFound(DynamicRelationError, KeyError):
    def __init__(self, name):
        self.name = name
        super().__init__(name)

    def __str__(self):
        return f'No hay formulario embebido con el nombre "{self.name}".'
