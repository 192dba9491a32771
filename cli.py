# cli.py - interactive operator console for the LPG Center API
import os
import sys
from datetime import datetime
from typing import List, Dict, Any, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import IntPrompt, Confirm, Prompt
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from lpg_sdk.lpgclient import LPGClient, DEFAULT_SESSION_FILE, is_low_stock

console = Console()
c = LPGClient(
    base_url=os.environ.get("LPG_API_URL", "http://127.0.0.1:8085"),
    anon_key=os.environ.get("LPG_ANON_KEY") or None,
    session_file=DEFAULT_SESSION_FILE,
)


# Global state for status messages and caching
status_message = "Ready"
current_user: Optional[Dict[str, Any]] = None
product_cache: List[Dict[str, Any]] = []
user_cache: List[Dict[str, Any]] = []

# Custom prompt style for prompt_toolkit
custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]], title: str = "📦 Inventory"):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title=title,
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("ID", style="dim", width=24)
    table.add_column("Name", style="bold", width=22)
    table.add_column("Category", width=12)
    table.add_column("Qty", justify="right", width=6)
    table.add_column("Price", justify="right", width=10)

    for p in sorted(products, key=lambda p: p.get("name", "")):
        qty = str(p.get("quantity", 0))
        if is_low_stock(p):
            qty = f"[bold red]{qty} ⚠[/bold red]"
        table.add_row(
            p.get("id", "N/A"),
            p.get("name", "N/A"),
            p.get("category", "N/A"),
            qty,
            f"₱{float(p.get('price', 0)):,.2f}",
        )
    console.print(table)


def show_users(users: List[Dict[str, Any]]):
    if not users:
        console.print("[italic yellow]No users found[/italic yellow]")
        return

    table = Table(title="👥 Users", box=box.ROUNDED, header_style="bold yellow", show_lines=True)
    table.add_column("ID", style="dim", width=38)
    table.add_column("Username", style="bold", width=16)
    table.add_column("Role", width=8)
    table.add_column("Created", width=24)

    for u in users:
        role_style = "magenta" if u.get("role") == "admin" else "green"
        table.add_row(
            u.get("id", "N/A"),
            u.get("username", "N/A"),
            f"[{role_style}]{u.get('role', 'N/A')}[/{role_style}]",
            u.get("createdAt", ""),
        )
    console.print(table)


def show_dashboard(products: List[Dict[str, Any]], users: Optional[List[Dict[str, Any]]]):
    low = sum(1 for p in products if is_low_stock(p))
    lines = [
        f"📦 [bold]Total products:[/bold] {len(products)}",
        f"⚠ [bold]Low stock:[/bold] [{'red' if low else 'green'}]{low}[/]",
    ]
    if users is not None:
        lines.append(f"👥 [bold]Users:[/bold] {len(users)}")
    console.print(Panel.fit("\n".join(lines), title="Dashboard", border_style="cyan"))


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper with enhanced exception handling
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner. Errors are shown in the
    status panel and turned into a None result.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except Exception as e:
        status_message = f"Error: {e}"
        console.print(show_status(f"Error: {e}", False))
        return None


# ---------------------------
# Autocompletion helpers
# ---------------------------
def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = try_api(c.get_products) or []
    return WordCompleter([p.get("id", "") for p in product_cache if p.get("id")], ignore_case=True)


def get_user_completer():
    return WordCompleter([u.get("id", "") for u in user_cache if u.get("id")], ignore_case=True)


def refresh_caches():
    global product_cache, user_cache
    product_cache = try_api(c.get_products) or []
    if current_user and current_user.get("role") == "admin":
        user_cache = try_api(c.get_users) or []


# ---------------------------
# Layout and Header
# ---------------------------
def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)

    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    who = f"{current_user['username']} ({current_user['role']})" if current_user else "not signed in"
    header.add_row(
        "🔥 K4J LPG Center",
        f"[bold blue]Inventory console[/bold blue] · [dim]{who}[/dim]",
        f"[dim]{now}[/dim]"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Input helpers with autocomplete
# ---------------------------
def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def ask_float(message: str, default: float = 0.0) -> float:
    while True:
        raw = Prompt.ask(message, default=str(default))
        try:
            return float(raw)
        except ValueError:
            console.print("[red]Please enter a valid number.[/red]")


def ask_optional(message: str, current: Any) -> Optional[str]:
    raw = Prompt.ask(f"{message} [dim](blank keeps {current})[/dim]", default="", show_default=False)
    return raw.strip() or None


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global status_message, product_cache, user_cache, current_user

    console.clear()
    current_user = try_api(c.check_session)
    console.print(create_header())
    refresh_caches()

    while True:
        if status_message:
            console.print(show_status(status_message, "Error" not in status_message))

        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "🔑 Sign in", "7", "👥 List users"),
            ("2", "📦 List products", "8", "✏️ Update user"),
            ("3", "🔍 Search products", "9", "🗑️ Delete user"),
            ("4", "➕ Add product", "10", "🆕 Sign up user"),
            ("5", "✏️ Update product", "11", "📊 Dashboard"),
            ("6", "🗑️ Delete product", "12", "🌱 Initialize database"),
            ("0", "🚪 Sign out", "q", "👋 Quit"),
        ]

        for row in options:
            menu_table.add_row(*row)

        console.print(Panel(menu_table, title="📋 Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(0, 13)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            username = prompt_with_autocomplete("Username")
            password = Prompt.ask("Password", password=True)
            resp = try_api(c.sign_in, username, password, success_msg=f"Signed in as {username}")
            if resp:
                current_user = resp["user"]
                refresh_caches()
                console.print(create_header())

        elif choice == "2":
            products = try_api(c.get_products, success_msg="Products loaded")
            if products is not None:
                product_cache = products
                show_products(products)

        elif choice == "3":
            term = prompt_with_autocomplete("Search name or category").strip().lower()
            products = try_api(c.get_products) or []
            product_cache = products
            hits = [p for p in products
                    if term in p.get("name", "").lower() or term in p.get("category", "").lower()]
            show_products(hits, title=f"🔍 Results for '{term}'")

        elif choice == "4":
            name = prompt_with_autocomplete("Product name")
            category = prompt_with_autocomplete(
                "Category", completer=WordCompleter(["Gas Tank", "Accessories", "Stove"], ignore_case=True)
            )
            qty = IntPrompt.ask("Quantity", default=0)
            price = ask_float("Price", default=0.0)
            threshold = IntPrompt.ask("Low stock threshold", default=20)
            resp = try_api(
                c.add_product,
                {"name": name, "category": category, "quantity": qty, "price": price,
                 "lowStockThreshold": threshold},
                success_msg=f"Product '{name}' added"
            )
            if resp:
                console.print(Panel(f"New product id: [green]{resp['id']}[/green]"))
                refresh_caches()

        elif choice == "5":
            pid = prompt_with_autocomplete("Product ID", completer=get_product_completer())
            existing = next((p for p in product_cache if p.get("id") == pid), {})
            updates: Dict[str, Any] = {}
            name = ask_optional("Name", existing.get("name", "-"))
            if name:
                updates["name"] = name
            category = ask_optional("Category", existing.get("category", "-"))
            if category:
                updates["category"] = category
            qty = ask_optional("Quantity", existing.get("quantity", "-"))
            if qty:
                updates["quantity"] = int(qty)
            price = ask_optional("Price", existing.get("price", "-"))
            if price:
                updates["price"] = float(price)
            if not updates:
                console.print("[yellow]Nothing to update[/yellow]")
            else:
                resp = try_api(c.update_product, pid, updates, success_msg=f"Product {pid} updated")
                if resp:
                    show_products([resp])
                    refresh_caches()

        elif choice == "6":
            pid = prompt_with_autocomplete("Product ID", completer=get_product_completer())
            if Confirm.ask(f"[red]Delete product {pid}?[/red]"):
                try_api(c.delete_product, pid, success_msg=f"Product {pid} deleted")
                refresh_caches()

        elif choice == "7":
            users = try_api(c.get_users, success_msg="Users loaded")
            if users is not None:
                user_cache = users
                show_users(users)

        elif choice == "8":
            uid = prompt_with_autocomplete("User ID", completer=get_user_completer())
            existing = next((u for u in user_cache if u.get("id") == uid), {})
            updates = {}
            username = ask_optional("Username", existing.get("username", "-"))
            if username:
                updates["username"] = username
            role = ask_optional("Role (admin/staff)", existing.get("role", "-"))
            if role:
                updates["role"] = role
            if updates:
                resp = try_api(c.update_user, uid, updates, success_msg=f"User {uid} updated")
                if resp:
                    show_users([resp])
                    refresh_caches()

        elif choice == "9":
            uid = prompt_with_autocomplete("User ID", completer=get_user_completer())
            if Confirm.ask(f"[red]Delete user {uid}? This cannot be undone.[/red]"):
                try_api(c.delete_user, uid, success_msg=f"User {uid} deleted")
                refresh_caches()

        elif choice == "10":
            username = prompt_with_autocomplete("New username")
            password = Prompt.ask("Password", password=True)
            role = Prompt.ask("Role", choices=["admin", "staff"], default="staff")
            resp = try_api(c.sign_up, username, password, role, success_msg=f"User '{username}' created")
            if resp:
                refresh_caches()

        elif choice == "11":
            refresh_caches()
            is_admin = bool(current_user and current_user.get("role") == "admin")
            show_dashboard(product_cache, user_cache if is_admin else None)
            low = [p for p in product_cache if is_low_stock(p)]
            if low:
                show_products(low, title="⚠ Low stock")

        elif choice == "12":
            resp = try_api(c.initialize_database, success_msg="Initialization finished")
            if resp:
                console.print(Panel.fit(resp.get("message", ""), title="🌱 Init"))
                refresh_caches()

        elif choice == "0":
            c.sign_out()
            current_user = None
            user_cache = []
            status_message = "Signed out"

        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Goodbye! 👋[/bold green]", title="K4J LPG Center"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


def main():
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n\n[bold red]Unexpected error: {e}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
