from .base import Component
from .badges import RoleBadge, StatusBadge
from .collaborator_list import CollaboratorList
from .confirm_dialog import ConfirmDialog
from .forms.fields import FormField, SelectField, TextAreaField, TextInputField
from .forms.product_form import ProductFormView
from .forms.submit import SubmitButton
from .layout import Layout
from .navigation import Navigation
from .notice import NoticeBanner
from .product_list import ProductList

__all__ = [
    "Component",
    "RoleBadge",
    "StatusBadge",
    "CollaboratorList",
    "ConfirmDialog",
    "FormField",
    "SelectField",
    "TextAreaField",
    "TextInputField",
    "ProductFormView",
    "SubmitButton",
    "Layout",
    "Navigation",
    "NoticeBanner",
    "ProductList",
]
