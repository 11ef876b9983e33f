"""
Labelled form controls.

A field owns its label, optional help text and error text; subclasses only
produce the control itself via `control()`. The control's `id` doubles as
the submitted name unless a select overrides it.
"""

from typing import Any, Dict, Iterable, Optional, Tuple

from ..base import Component


class FormField(Component):
    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text

    def control(self, *args: Any, **kwargs: Any) -> str:
        raise NotImplementedError

    def control_attrs(self, name: Optional[str] = None, **extra: Any) -> str:
        """Common control attributes in a stable order: id, name, required, then extras."""
        attrs: Dict[str, Any] = {"id": self.field_id, "name": name or self.field_id, "required": self.required}
        attrs.update(extra)
        if self.help_text:
            attrs["aria_describedby"] = f"{self.field_id}-help"
        if self.error_text:
            attrs["aria_invalid"] = "true"
        return self.attributes(**attrs)

    def render(self, *args: Any, **kwargs: Any) -> str:
        marker = ' <abbr class="form-required" title="required">*</abbr>' if self.required else ""
        notes = []
        if self.help_text:
            notes.append(f'<small class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</small>')
        if self.error_text:
            notes.append(f'<small class="form-error" role="alert">{self.escape(self.error_text)}</small>')
        wrapper = self.classes("form-field", has_error=bool(self.error_text))
        return (
            f'<div class="{wrapper}">'
            f'<label for="{self.field_id}">{self.escape(self.label)}{marker}</label>'
            f"{self.control(*args, **kwargs)}{''.join(notes)}"
            "</div>"
        )


class TextInputField(FormField):
    def control(self, *, value: str = "", input_type: str = "text", placeholder: Optional[str] = None) -> str:
        attrs = self.control_attrs(type=input_type, value=value, placeholder=placeholder)
        return f"<input {attrs}>"


class TextAreaField(FormField):
    def control(self, value: str = "", rows: int = 4) -> str:
        return f"<textarea {self.control_attrs(rows=rows)}>{self.escape(value)}</textarea>"


class SelectField(FormField):
    """Select over `(value, label)` pairs.

    `placeholder` adds a leading empty option. `disabled` makes the control
    inert, e.g. when there is nothing to choose from; `name` lets several
    selects on one page submit under the same key.
    """

    def control(
        self,
        options: Iterable[Tuple[str, str]],
        *,
        selected: str = "",
        placeholder: Optional[str] = None,
        disabled: bool = False,
        name: Optional[str] = None,
    ) -> str:
        choices = [("", placeholder)] if placeholder is not None else []
        choices.extend(options)
        rendered = "".join(
            f"<option {self.attributes(value=value, selected=bool(value) and value == selected)}>{self.escape(text)}</option>"
            for value, text in choices
        )
        return f"<select {self.control_attrs(name, disabled=disabled)}>{rendered}</select>"
