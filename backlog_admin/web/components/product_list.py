"""Product list with search, edit links and delete buttons."""

from typing import List

from backlog_admin.management.products import Product

from .badges import StatusBadge
from .base import Component
from .forms.fields import TextInputField
from .forms.submit import SubmitButton


class ProductList(Component):
    def __init__(self, items: List[Product], *, csrf_token: str, search: str = "", show_empty: bool = True) -> None:
        self.items = items
        self.csrf_token = csrf_token
        self.search = search
        self.show_empty = show_empty

    def _render_empty(self) -> str:
        if self.search.strip():
            hint = f"No products match &quot;{self.escape(self.search.strip())}&quot;."
        else:
            hint = "Start by creating the first product."
        return f'<li class="empty-state"><strong>No products</strong><p class="text-muted">{hint}</p></li>'

    def render(self) -> str:
        rows = "".join(self._render_row(item) for item in self.items)
        if not rows and self.show_empty:
            rows = self._render_empty()
        return f"""
        <div class="toolbar">
            <form method="get" action="/admin/products" class="filter-bar" role="search">
                {TextInputField("search", "Search").render(value=self.search, input_type="search", placeholder="Product name")}
                {SubmitButton("Apply", variant="secondary").render()}
            </form>
            <a class="btn btn-primary" href="/admin/products/new">New product</a>
        </div>
        <h2 class="list-heading">Products ({len(self.items)})</h2>
        <ul class="product-list" id="product-list">{rows}</ul>
        """

    def _render_dates(self, item: Product) -> str:
        dates = [("Ends", self.day(item.end_date)), ("Created", self.day(item.created_at))]
        return "".join(
            f'<span class="text-muted">{label} {self.escape(value)}</span>' for label, value in dates if value
        )

    def _render_row(self, item: Product) -> str:
        hidden = self.hidden_inputs({"csrf_token": self.csrf_token, "name": item.name, "search": self.search})
        return f"""
        <li {self.attributes(class_="product-row", data_id=item.id)}>
            <div class="product-main">
                <strong>{self.escape(item.name)}</strong>
                <p>{self.escape(item.description)}</p>
                <span class="text-muted">Responsible: {self.escape(item.responsible.display or "Unassigned")}</span>
                {self._render_dates(item)}
            </div>
            {StatusBadge(item.status).render()}
            <a class="btn btn-secondary" href="/admin/products/{self.escape(item.id)}/edit">Edit</a>
            <form method="post" action="/admin/products/{self.escape(item.id)}/delete" class="inline-form">
                {hidden}
                {SubmitButton("Delete", variant="danger").render()}
            </form>
        </li>
        """
