"""
Submit button component.
"""

from typing import Optional

from ..base import Component


class SubmitButton(Component):
    """Form action button; `variant` picks the style (primary, danger, secondary)."""

    def __init__(
        self,
        label: str,
        *,
        variant: str = "primary",
        disabled: bool = False,
        name: Optional[str] = None,
        value: Optional[str] = None,
    ) -> None:
        self.label = label
        self.variant = variant
        self.disabled = disabled
        self.name = name
        self.value = value

    def render(self) -> str:
        attrs = self.attributes(
            type="submit",
            class_=self.classes("btn", f"btn-{self.variant}"),
            disabled=self.disabled,
            name=self.name,
            value=self.value,
        )
        return f"<button {attrs}>{self.escape(self.label)}</button>"
