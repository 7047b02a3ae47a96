# dynforms/forms/catalogo.py
from dynforms.forms.base import ModelForm
from dynforms.forms.dynamic import EmbeddableRelationForm
from dynforms.models.catalogo import EvidenciaItem, Responsable, Submodulo, Subprograma
from dynforms.schemas.catalogo import EvidenciaItemIn, ResponsableIn, SubmoduloIn, SubprogramaIn


class SubprogramaForm(EmbeddableRelationForm):
    model = Subprograma
    schema = SubprogramaIn

    def configure(self):
        self.embed_dynamic_relation("submodulos")


class SubmoduloForm(EmbeddableRelationForm):
    model = Submodulo
    schema = SubmoduloIn

    def configure(self):
        # evidencias: FK NOT NULL (se borran); responsables: FK nullable (se desvinculan)
        self.embed_dynamic_relation("evidencias")
        self.embed_dynamic_relation("responsables")


class EvidenciaItemForm(ModelForm):
    model = EvidenciaItem
    schema = EvidenciaItemIn


class ResponsableForm(ModelForm):
    model = Responsable
    schema = ResponsableIn
