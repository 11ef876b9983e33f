"""
Confirmation step for destructive actions.

The submitting form is re-posted with `confirm=yes` plus all hidden values it
carried; Cancel returns to the list without sending anything.
"""

from typing import Dict, Optional

from .base import Component
from .forms.submit import SubmitButton


class ConfirmDialog(Component):
    def __init__(
        self,
        prompt: str,
        *,
        action: str,
        hidden: Dict[str, Optional[str]],
        cancel_href: str,
        confirm_label: str = "Confirm",
    ) -> None:
        self.prompt = prompt
        self.action = action
        self.hidden = hidden
        self.cancel_href = cancel_href
        self.confirm_label = confirm_label

    def render(self) -> str:
        return f"""
        <section class="confirm-dialog" role="alertdialog" aria-labelledby="confirm-prompt">
            <p id="confirm-prompt">{self.escape(self.prompt)}</p>
            <form method="post" action="{self.escape(self.action)}">
                {self.hidden_inputs({**self.hidden, "confirm": "yes"})}
                {SubmitButton(self.confirm_label, variant="danger").render()}
                <a class="btn btn-secondary" href="{self.escape(self.cancel_href)}">Cancel</a>
            </form>
        </section>
        """
