"""
Product create/edit form.

The responsible selector is fed by the assignable principals. When that list
is denied or empty the selector is disabled and the reason is shown above it;
the rest of the form stays usable.
"""
from typing import Optional

from backlog_admin.identity_access.domain import PRODUCT_STATUSES
from backlog_admin.management.notices import Notice
from backlog_admin.management.products import AssignableState, ProductDraft

from ..base import Component
from ..notice import NoticeBanner
from .fields import SelectField, TextAreaField, TextInputField
from .submit import SubmitButton


class ProductFormView(Component):
    def __init__(
        self,
        draft: ProductDraft,
        *,
        csrf_token: str,
        assignable: AssignableState,
        product_id: Optional[str] = None,
        notice: Optional[Notice] = None,
    ) -> None:
        self.draft = draft
        self.csrf_token = csrf_token
        self.assignable = assignable
        self.product_id = product_id
        self.notice = notice

    @property
    def action(self) -> str:
        return f"/admin/products/{self.product_id}" if self.product_id else "/admin/products"

    def render(self) -> str:
        draft = self.draft
        responsible_options = [(user.id, f"{user.display_name} ({user.email})") for user in self.assignable.users]
        fields = [
            TextInputField("name", "Name", required=True).render(value=draft.name),
            TextAreaField("description", "Description", required=True).render(value=draft.description),
            SelectField("responsible_id", "Responsible", required=True).render(
                responsible_options,
                selected=draft.responsible_id,
                placeholder="Select a collaborator",
                disabled=not responsible_options,
            ),
            TextInputField("end_date", "End date").render(value=draft.end_date, input_type="date"),
            SelectField("status", "Status").render(
                [(info.value, info.label) for info in PRODUCT_STATUSES],
                selected=draft.status,
            ),
        ]
        submit = SubmitButton("Save changes" if self.product_id else "Create product")
        return f"""
        {NoticeBanner([self.notice, self.assignable.notice]).render()}
        <form method="post" action="{self.escape(self.action)}" class="product-form">
            {self.hidden_inputs({"csrf_token": self.csrf_token})}
            {''.join(fields)}
            <div class="form-actions">
                {submit.render()}
                <a class="btn btn-secondary" href="/admin/products">Cancel</a>
            </div>
        </form>
        """
