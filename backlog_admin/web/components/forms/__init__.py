"""
Form components for the console.

Building blocks (fields, submit button) plus the product create/edit form.
"""

from .fields import FormField, SelectField, TextAreaField, TextInputField
from .submit import SubmitButton
from .product_form import ProductFormView

__all__ = [
    "FormField",
    "SelectField",
    "TextAreaField",
    "TextInputField",
    "SubmitButton",
    "ProductFormView",
]
