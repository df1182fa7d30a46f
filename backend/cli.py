"""
Enxoval CLI.

Command-line interface for setup and operations, plus a terminal
storefront (cart + checkout) that talks to a running API.
"""

import asyncio
import functools
import webbrowser
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

app = typer.Typer(
    name="enxoval",
    help="Enxoval gift registry CLI",
    add_completion=False,
)
console = Console()

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_CART_FILE = Path.home() / ".enxoval" / "cart.json"


def _brl(cents: int) -> str:
    from shared.utils.validators import format_brl

    return format_brl(cents)


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init(
    demo: bool = typer.Option(False, "--demo", help="Also insert a demo catalog"),
):
    """Create tables and seed the singleton rows."""
    from enxoval_api.models import Base
    from enxoval_api.seed import seed, seed_demo
    from shared.config.settings import settings
    from shared.infrastructure.db import SessionLocal, engine

    if demo and settings.environment == "production":
        console.print("[red]Refusing to insert demo data in production[/red]")
        raise typer.Exit(1)

    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        seed(db)
        created = seed_demo(db) if demo else 0

    console.print("[green]✓ Database ready[/green]")
    if demo:
        console.print(f"[green]✓ {created} demo products[/green]")


@app.command()
def create_admin(
    email: str = typer.Argument(..., help="Login email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    name: Optional[str] = typer.Option(None, "--name", help="Display name"),
):
    """Create an admin account, or promote and reset an existing one."""
    from sqlalchemy import func, select

    from enxoval_api.models import AdminUser, Profile
    from shared.config.constants import Roles
    from shared.infrastructure.db import SessionLocal, safe_commit
    from shared.security.password import hash_password

    with SessionLocal() as db:
        user = db.scalar(select(AdminUser).where(func.lower(AdminUser.email) == email.lower()))
        created = user is None
        if created:
            user = AdminUser(email=email.lower(), password=hash_password(password), full_name=name)
            db.add(user)
            db.flush()
        else:
            user.password = hash_password(password)
            if name:
                user.full_name = name

        profile = db.scalar(select(Profile).where(Profile.user_id == user.id))
        if profile is None:
            db.add(Profile(user_id=user.id, role=Roles.ADMIN))
        else:
            profile.role = Roles.ADMIN
        safe_commit(db)

    verb = "created" if created else "updated"
    console.print(f"[green]✓ Admin {email} {verb}[/green]")


# =============================================================================
# Gateway Commands
# =============================================================================

@app.command()
def mp_health():
    """Create a R$ 1,00 test preference and show the gateway's answer."""
    from enxoval_api.services.payments.gateway import MercadoPagoGateway
    from shared.infrastructure.db import SessionLocal

    with SessionLocal() as db:
        gateway = MercadoPagoGateway.from_db(db)
    result = asyncio.run(gateway.health_check())

    color = "green" if result["status"] == "SUCCESS" else "red"
    table = Table(title="Mercado Pago Health")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Status", f"[{color}]{result['status']}[/{color}]")
    table.add_row("HTTP", str(result.get("statusHTTP") or "-"))
    table.add_row("Preference", str(result.get("preference_id") or "-"))
    table.add_row("Init point", str(result.get("init_point") or "-"))
    if result.get("error"):
        table.add_row("Error", result["error"])
    console.print(table)

    if result["status"] != "SUCCESS":
        raise typer.Exit(1)


# =============================================================================
# Storefront Commands
# =============================================================================

def _fetch_product(api_url: str, product_id: int) -> dict:
    response = httpx.get(f"{api_url.rstrip('/')}/api/products", timeout=15.0)
    response.raise_for_status()
    for product in response.json():
        if product["id"] == product_id:
            return product
    console.print(f"[red]Produto {product_id} não encontrado ou inativo[/red]")
    raise typer.Exit(1)


def _print_cart(state) -> None:
    if state.is_empty:
        console.print("[yellow]Carrinho vazio[/yellow]")
        return
    table = Table(title="Carrinho")
    table.add_column("ID", style="dim")
    table.add_column("Produto", style="cyan")
    table.add_column("Qtd", justify="right")
    table.add_column("Subtotal", justify="right", style="green")
    for item in state.items:
        table.add_row(str(item.product_id), item.name, str(item.quantity), _brl(item.subtotal_cents))
    table.add_row("", "[bold]Total[/bold]", str(state.item_count), f"[bold]{_brl(state.total_cents)}[/bold]")
    console.print(table)


@app.command()
def cart_add(
    product_id: int = typer.Argument(..., help="Product ID from the catalog"),
    quantity: int = typer.Option(1, "--quantity", "-q"),
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="ENXOVAL_API_URL"),
    cart_file: Path = typer.Option(DEFAULT_CART_FILE, envvar="ENXOVAL_CART_FILE"),
):
    """Add a product to the saved cart."""
    from enxoval_api.services.checkout import AddItem, CartError, CartItem, CartStore

    product = _fetch_product(api_url, product_id)
    store = CartStore(cart_file)
    try:
        state = store.dispatch(
            AddItem(
                CartItem(
                    product_id=product["id"],
                    name=product["name"],
                    price_cents=product["price_cents"],
                    quantity=quantity,
                    target_qty=product["target_qty"],
                    purchased_qty=product["purchased_qty"],
                    image_url=product.get("image_url"),
                )
            )
        )
    except CartError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    _print_cart(state)


@app.command()
def cart_set(
    product_id: int = typer.Argument(...),
    quantity: int = typer.Argument(..., help="New quantity; 0 removes the item"),
    cart_file: Path = typer.Option(DEFAULT_CART_FILE, envvar="ENXOVAL_CART_FILE"),
):
    """Change the quantity of a cart line."""
    from enxoval_api.services.checkout import CartError, CartStore, UpdateQuantity

    store = CartStore(cart_file)
    try:
        state = store.dispatch(UpdateQuantity(product_id, quantity))
    except CartError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    _print_cart(state)


@app.command()
def cart_show(
    cart_file: Path = typer.Option(DEFAULT_CART_FILE, envvar="ENXOVAL_CART_FILE"),
):
    """Show the saved cart."""
    from enxoval_api.services.checkout import CartStore

    _print_cart(CartStore(cart_file).state)


@app.command()
def cart_clear(
    cart_file: Path = typer.Option(DEFAULT_CART_FILE, envvar="ENXOVAL_CART_FILE"),
):
    """Empty the saved cart."""
    from enxoval_api.services.checkout import CartStore, ClearCart

    CartStore(cart_file).dispatch(ClearCart())
    console.print("[green]✓ Carrinho esvaziado[/green]")


def _open_same_window(url: str) -> None:
    if not webbrowser.open(url, new=0):
        raise RuntimeError("no browser available")


def _open_new_tab(url: str) -> None:
    if not webbrowser.open(url, new=2):
        raise RuntimeError("no browser available")


def _print_link(url: str) -> None:
    console.print(f"Abra o link para pagar: [link={url}]{url}[/link]")


NAVIGATION_STRATEGIES = (_open_same_window, _open_new_tab, _print_link)


@app.command()
def checkout(
    api_url: str = typer.Option(DEFAULT_API_URL, envvar="ENXOVAL_API_URL"),
    cart_file: Path = typer.Option(DEFAULT_CART_FILE, envvar="ENXOVAL_CART_FILE"),
    payment_method: str = typer.Option("pix", "--method", help="pix, credit or debit"),
):
    """Pay for the saved cart through the hosted checkout page."""
    from enxoval_api.services.checkout import (
        CheckoutError,
        CheckoutLine,
        CheckoutOrchestrator,
        CartStore,
        ClearCart,
        Purchaser,
        navigate,
    )
    from enxoval_api.services.checkout.orchestrator import api_fetcher

    store = CartStore(cart_file)
    state = store.state
    if state.is_empty:
        console.print("[yellow]Seu carrinho está vazio[/yellow]")
        raise typer.Exit(1)
    _print_cart(state)

    purchaser = Purchaser(
        name=Prompt.ask("Seu nome"),
        email=Prompt.ask("Seu email"),
        payment_method=payment_method,
    )
    lines = [
        CheckoutLine(item.product_id, item.name, item.price_cents, item.quantity)
        for item in state.items
    ]

    async def _run() -> str:
        orchestrator = CheckoutOrchestrator(
            api_fetcher(api_url),
            functools.partial(navigate, strategies=NAVIGATION_STRATEGIES),
        )
        try:
            return await orchestrator.submit(lines, purchaser)
        finally:
            await orchestrator.aclose()

    try:
        with console.status("Gerando link de pagamento..."):
            url = asyncio.run(_run())
    except CheckoutError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    store.dispatch(ClearCart())
    console.print(f"[green]✓ Checkout aberto[/green] [dim]{url}[/dim]")


if __name__ == "__main__":
    app()
