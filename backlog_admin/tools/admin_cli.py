"""Command-line access to the admin endpoints.

Why:
    Operators occasionally need to look up a collaborator, fix a role or drop
    a product without opening the console (e.g. from a deploy shell). The
    commands drive the same controllers as the console, so confirmation,
    relisting and error notices behave identically.

Usage:
    export API_BASE_URL=https://api.example.org
    export BACKLOG_ADMIN_TOKEN=<access token>
    backlog-admin collaborators list --role scrum_master
    backlog-admin collaborators set-role 64f0c2... product_owner
    backlog-admin products delete 5 --yes

Notes:
    - Error notices terminate with exit status 1.
    - A declined confirmation sends nothing and exits 0.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, TypeVar
import asyncio

import click

from backlog_admin.identity_access.domain import ROLE_OPTIONS, role_info, status_info
from backlog_admin.identity_access.tokens import StaticTokenProvider
from backlog_admin.management.api import DEFAULT_PROFILE_PATH, DEFAULT_TIMEOUT_SECONDS, AdminApi, AdminApiError
from backlog_admin.management.collaborators import CollaboratorsController
from backlog_admin.management.controller import ALL_SENTINEL
from backlog_admin.management.notices import Notice
from backlog_admin.management.products import ProductsController

R = TypeVar("R")


def _build_api(obj: Dict[str, Any]) -> AdminApi:
    return AdminApi(
        obj["api_url"],
        StaticTokenProvider(obj.get("token")),
        timeout=obj["timeout"],
        transport=obj.get("transport"),
        profile_path=obj["profile_path"],
    )


def _run(obj: Dict[str, Any], action: Callable[[AdminApi], Awaitable[R]]) -> R:
    async def _main() -> R:
        async with _build_api(obj) as api:
            return await action(api)

    return asyncio.run(_main())


def _confirm_fn(yes: bool) -> Callable[[str], bool]:
    if yes:
        return lambda prompt: True
    return lambda prompt: click.confirm(prompt, default=False)


def _report(notice: Notice | None) -> None:
    if notice is None:
        click.echo("Cancelled; nothing was changed.")
        return
    if notice.is_error:
        raise click.ClickException(notice.message)
    click.echo(notice.message)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--api-url", envvar="API_BASE_URL", default="http://localhost:4000", show_default=True, help="Backend base URL.")
@click.option("--token", envvar="BACKLOG_ADMIN_TOKEN", help="Bearer access token (or BACKLOG_ADMIN_TOKEN).")
@click.option("--timeout", type=float, default=DEFAULT_TIMEOUT_SECONDS, show_default=True, help="Request timeout in seconds.")
@click.option("--profile-path", envvar="PROFILE_PATH", default=DEFAULT_PROFILE_PATH, show_default=True)
@click.pass_context
def cli(ctx: click.Context, api_url: str, token: str | None, timeout: float, profile_path: str) -> None:
    """Administer collaborators and products of the backlog platform."""
    ctx.ensure_object(dict)
    ctx.obj.update(api_url=api_url, token=token, timeout=timeout, profile_path=profile_path)


@cli.command()
@click.pass_obj
def whoami(obj: Dict[str, Any]) -> None:
    """Show the profile (and role) the backend sees for the token."""
    try:
        profile = _run(obj, lambda api: api.get_profile())
    except AdminApiError as exc:
        raise click.ClickException(exc.message or exc.code) from exc
    user = profile.get("user") if isinstance(profile.get("user"), dict) else {}
    name = user.get("nombre_negocio") or user.get("name") or ""
    email = user.get("email") or ""
    role = user.get("role")
    click.echo(f"{name or email or 'unknown'} <{email}>" if email else (name or "unknown"))
    click.echo(f"role: {role_info(role).label if role else 'none'}")


# --- Collaborators --------------------------------------------------------------


@cli.group()
def collaborators() -> None:
    """List collaborators and change their roles."""


@collaborators.command("list")
@click.option("--search", default="", help="Name or email fragment.")
@click.option(
    "--role",
    type=click.Choice([ALL_SENTINEL] + [info.value for info in ROLE_OPTIONS]),
    default=ALL_SENTINEL,
    show_default=True,
)
@click.pass_obj
def collaborators_list(obj: Dict[str, Any], search: str, role: str) -> None:
    async def action(api: AdminApi):
        controller = CollaboratorsController(api)
        return await controller.list({"search": search, "role": role})

    state = _run(obj, action)
    if state.error:
        raise click.ClickException(state.error)
    if not state.items:
        click.echo("No collaborators found.")
        return
    for item in state.items:
        status = "active" if item.active else "inactive"
        click.echo(f"{item.id}\t{item.display_name}\t{item.email}\t{role_info(item.role).label}\t{status}")


@collaborators.command("set-role")
@click.argument("user_id")
@click.argument("role")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def collaborators_set_role(obj: Dict[str, Any], user_id: str, role: str, yes: bool) -> None:
    """Assign ROLE (user, developers, scrum_master, product_owner, super_admin) to USER_ID."""

    async def action(api: AdminApi):
        controller = CollaboratorsController(api, confirm=_confirm_fn(yes))
        return await controller.change_role(user_id, role)

    _report(_run(obj, action))


# --- Products -------------------------------------------------------------------


@cli.group()
def products() -> None:
    """List and delete products."""


@products.command("list")
@click.option("--search", default="", help="Product name fragment.")
@click.pass_obj
def products_list(obj: Dict[str, Any], search: str) -> None:
    async def action(api: AdminApi):
        controller = ProductsController(api)
        return await controller.list({"search": search})

    state = _run(obj, action)
    if state.error:
        raise click.ClickException(state.error)
    if not state.items:
        click.echo("No products found.")
        return
    for item in state.items:
        responsible = item.responsible.display or "unassigned"
        click.echo(f"{item.id}\t{item.name}\t{status_info(item.status).label}\t{responsible}")


@products.command("delete")
@click.argument("product_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_obj
def products_delete(obj: Dict[str, Any], product_id: str, yes: bool) -> None:
    async def action(api: AdminApi):
        controller = ProductsController(api, confirm=_confirm_fn(yes))
        return await controller.remove(product_id)

    _report(_run(obj, action))


if __name__ == "__main__":  # pragma: no cover - manual entry
    cli()
