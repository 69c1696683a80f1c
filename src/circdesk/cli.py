"""Command-line interface for circdesk.

Built with Typer for commands and Rich for output.
"""

import logging
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .catalog import CatalogManager, ItemCategory, ItemCreate, ItemFormat
from .config import get_config
from .db import get_db
from .errors import CirculationError, UnknownPatron
from .items import ItemStatus
from .ledger import CirculationLedger, LoanState
from .notifications import NotificationDispatcher
from .patrons import PatronClass, PatronCreate, PatronManager

# Create the main app
app = typer.Typer(
    name="circdesk",
    help="Library circulation desk: loans, reservations, fees and notices.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
catalog_app = typer.Typer(help="Catalog titles and copies.")
app.add_typer(catalog_app, name="catalog")

patron_app = typer.Typer(help="Manage patron accounts.")
app.add_typer(patron_app, name="patron")

loan_app = typer.Typer(help="Borrow, return, reserve and renew.")
app.add_typer(loan_app, name="loan")

item_app = typer.Typer(help="Inspect items and override their status.")
app.add_typer(item_app, name="item")

notify_app = typer.Typer(help="Read patron notifications.")
app.add_typer(notify_app, name="notify")

# Rich console for pretty output
console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log circulation activity"),
) -> None:
    """Configure logging before any command runs."""
    config = get_config()
    level = "INFO" if verbose else config.log_level
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def format_cents(cents: int) -> str:
    return f"${cents / 100:.2f}"


def _db():
    return get_db(str(get_config().db_path))


def _ledger() -> CirculationLedger:
    return CirculationLedger(_db(), policy=get_config().policy)


def _patrons() -> PatronManager:
    return PatronManager(_db(), get_config().policy)


def _resolve_patron(manager: PatronManager, ref: str) -> str:
    """Accept a patron ID or name."""
    patron = manager.get(ref) or manager.get_by_name(ref)
    if patron is None:
        raise UnknownPatron(f"Patron not found: {ref}")
    return patron.id


def _fail(error: CirculationError) -> None:
    print_error(str(error))
    raise typer.Exit(1)


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        print_error(f"Invalid date '{value}' (expected YYYY-MM-DD)")
        raise typer.Exit(1)


# ============================================================================
# Catalog Commands
# ============================================================================


@catalog_app.command("add")
def catalog_add(
    title: str = typer.Argument(..., help="Title"),
    author: str = typer.Argument(..., help="Author"),
    genre: Optional[str] = typer.Option(None, "--genre", "-g", help="Genre"),
    category: ItemCategory = typer.Option(ItemCategory.FICTION, "--category", help="Category"),
    fmt: ItemFormat = typer.Option(ItemFormat.PAPERBACK, "--format", "-f", help="Format"),
    isbn: Optional[str] = typer.Option(None, "--isbn", "-i", help="ISBN-10 or ISBN-13"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Page count"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Audio duration"),
    copies: int = typer.Option(1, "--copies", "-c", help="Number of copies"),
) -> None:
    """Catalog a title and its copies."""
    ledger = _ledger()
    try:
        data = ItemCreate(
            title=title,
            author=author,
            genre=genre,
            category=category,
            format=fmt,
            isbn=isbn,
            page_count=pages,
            duration_minutes=minutes,
            copies=copies,
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    items = ledger.catalog.add_item(data)
    print_success(f"Added: {title} by {author} ({len(items)} copies)")
    for item in items:
        console.print(f"  {item.id}")


@catalog_app.command("list")
def catalog_list(
    status: Optional[ItemStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
) -> None:
    """List copies with their status."""
    items = CatalogManager(_db()).list_items()
    if status:
        items = [i for i in items if i.status == status.value]

    if not items:
        print_info("No items found")
        return

    table = Table(title="Items", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Format")
    table.add_column("Status", style="yellow")
    table.add_column("Borrows", justify="right")

    for item in items:
        table.add_row(
            item.id,
            item.entry.title,
            item.entry.author,
            item.entry.format,
            item.status,
            str(item.borrow_count or 0),
        )

    console.print(table)


@catalog_app.command("search")
def catalog_search(
    query: str = typer.Argument(..., help="Search title, author or genre"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max results"),
) -> None:
    """Search the catalog."""
    entries = CatalogManager(_db()).search(query, limit=limit)
    if not entries:
        print_info(f"No titles match '{query}'")
        return

    table = Table(title=f"Results for '{query}'", show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green")
    table.add_column("Genre")
    table.add_column("Format")
    table.add_column("Reading time", justify="right")

    for entry in entries:
        minutes = entry.reading_minutes
        table.add_row(
            entry.title,
            entry.author,
            entry.genre or "-",
            entry.format,
            f"{minutes // 60}h {minutes % 60:02d}m" if minutes else "-",
        )

    console.print(table)


# ============================================================================
# Patron Commands
# ============================================================================


@patron_app.command("add")
def patron_add(
    name: str = typer.Argument(..., help="Patron name"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Email"),
    patron_class: PatronClass = typer.Option(PatronClass.STANDARD, "--class", "-c", help="Patron class"),
    genre: Optional[list[str]] = typer.Option(None, "--genre", "-g", help="Favorite genre (repeatable)"),
) -> None:
    """Register a patron."""
    try:
        data = PatronCreate(
            name=name, email=email, patron_class=patron_class, favorite_genres=genre or []
        )
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    patron = _patrons().register(data)
    print_success(f"Registered {patron.name} ({patron.patron_class})")
    console.print(f"  {patron.id}")


@patron_app.command("list")
def patron_list(
    active: bool = typer.Option(False, "--active", "-a", help="Only active accounts"),
) -> None:
    """List patrons."""
    manager = _patrons()
    patrons = manager.list_patrons(active_only=active)
    if not patrons:
        print_info("No patrons found")
        return

    table = Table(title="Patrons", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Class")
    table.add_column("Active")
    table.add_column("Balance", justify="right")

    for p in patrons:
        table.add_row(
            p.id,
            p.name,
            p.patron_class,
            "yes" if p.active else "[red]no[/red]",
            format_cents(p.balance_cents or 0),
        )

    console.print(table)


@patron_app.command("show")
def patron_show(
    patron: str = typer.Argument(..., help="Patron ID or name"),
) -> None:
    """Show a patron's account and loans."""
    manager = _patrons()
    ledger = _ledger()
    try:
        summary = manager.summary(_resolve_patron(manager, patron))
    except CirculationError as e:
        _fail(e)

    console.print(Panel(
        f"[bold]{summary.name}[/bold] ({summary.patron_class.value})\n"
        f"Status: {'active' if summary.active else '[red]inactive[/red]'}\n"
        f"Loans: {summary.open_loans}/{summary.borrow_limit}\n"
        f"Reservations: {summary.reservations}\n"
        f"Balance: {format_cents(summary.balance_cents)}\n"
        f"Favorite genres: {', '.join(summary.favorite_genres) or '-'}",
        title="Patron",
        border_style="blue",
    ))

    loans = ledger.loans_for(summary.id, open_only=True)
    if loans:
        _print_loans([ledger.summarize(loan) for loan in loans], title="Open loans")


@patron_app.command("class")
def patron_class(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    new_class: PatronClass = typer.Argument(..., help="New class"),
) -> None:
    """Change a patron's class."""
    manager = _patrons()
    try:
        account = manager.change_class(_resolve_patron(manager, patron), new_class)
    except CirculationError as e:
        _fail(e)
    print_success(f"{account.name} is now {account.patron_class}")


@patron_app.command("deactivate")
def patron_deactivate(
    patron: str = typer.Argument(..., help="Patron ID or name"),
) -> None:
    """Deactivate an account. Returns are still accepted."""
    manager = _patrons()
    try:
        account = manager.set_active(_resolve_patron(manager, patron), False)
    except CirculationError as e:
        _fail(e)
    print_success(f"Deactivated {account.name}")


@patron_app.command("activate")
def patron_activate(
    patron: str = typer.Argument(..., help="Patron ID or name"),
) -> None:
    """Reactivate an account."""
    manager = _patrons()
    try:
        account = manager.set_active(_resolve_patron(manager, patron), True)
    except CirculationError as e:
        _fail(e)
    print_success(f"Activated {account.name}")


@patron_app.command("genre")
def patron_genre(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    genre: str = typer.Argument(..., help="Genre to follow"),
) -> None:
    """Add a favorite genre."""
    manager = _patrons()
    try:
        genres = manager.add_favorite_genre(_resolve_patron(manager, patron), genre)
    except CirculationError as e:
        _fail(e)
    print_success(f"Favorite genres: {', '.join(genres)}")


@patron_app.command("pay")
def patron_pay(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    cents: Optional[int] = typer.Option(None, "--cents", help="Amount in cents (default: all)"),
) -> None:
    """Pay down a patron's balance."""
    ledger = _ledger()
    try:
        paid = ledger.pay(_resolve_patron(ledger.accounts, patron), cents)
    except CirculationError as e:
        _fail(e)
    print_success(f"Paid {format_cents(paid)}")


# ============================================================================
# Loan Commands
# ============================================================================


def _print_loans(summaries: list, title: str = "Loans") -> None:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Item", style="cyan", max_width=30)
    table.add_column("Due")
    table.add_column("Status")
    table.add_column("Fee", justify="right")

    for s in summaries:
        if s.state == LoanState.RETURNED:
            status_str = "[dim]returned[/dim]"
        elif s.days_overdue:
            status_str = f"[bold red]OVERDUE ({s.days_overdue}d)[/bold red]"
        else:
            status_str = "[green]open[/green]"
        table.add_row(
            s.id,
            s.title or s.item_id,
            s.due_date.isoformat(),
            status_str,
            format_cents(s.late_fee_cents) if s.late_fee_cents else "-",
        )

    console.print(table)


@loan_app.command("borrow")
def loan_borrow(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Check an item out to a patron."""
    ledger = _ledger()
    try:
        loan = ledger.borrow(_resolve_patron(ledger.accounts, patron), item_id)
    except CirculationError as e:
        _fail(e)
    print_success(f"Borrowed, due {loan.due_date}")
    console.print(f"  {loan.id}")


@loan_app.command("return")
def loan_return(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Return a borrowed item."""
    ledger = _ledger()
    try:
        loan = ledger.return_item(_resolve_patron(ledger.accounts, patron), item_id)
    except CirculationError as e:
        _fail(e)
    if loan.late_fee_cents:
        print_success(f"Returned late. Fee charged: {format_cents(loan.late_fee_cents)}")
    else:
        print_success("Returned on time")


@loan_app.command("reserve")
def loan_reserve(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Join an item's reservation queue."""
    ledger = _ledger()
    try:
        ledger.reserve(_resolve_patron(ledger.accounts, patron), item_id)
    except CirculationError as e:
        _fail(e)
    state = ledger.item_state(item_id)
    print_success(f"Reserved. Position in queue: {len(state.queue)}")


@loan_app.command("cancel")
def loan_cancel(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Cancel a reservation."""
    ledger = _ledger()
    try:
        ledger.cancel_reservation(_resolve_patron(ledger.accounts, patron), item_id)
    except CirculationError as e:
        _fail(e)
    print_success("Reservation cancelled")


@loan_app.command("renew")
def loan_renew(
    loan_id: str = typer.Argument(..., help="Loan ID"),
    days: int = typer.Option(7, "--days", "-d", help="Days to add"),
) -> None:
    """Extend an open loan."""
    ledger = _ledger()
    try:
        loan = ledger.renew(loan_id, days)
    except CirculationError as e:
        _fail(e)
    print_success(f"Renewed, now due {loan.due_date}")


@loan_app.command("list")
def loan_list(
    patron: Optional[str] = typer.Option(None, "--patron", "-p", help="Patron ID or name"),
    all_loans: bool = typer.Option(False, "--all", "-a", help="Include returned loans"),
) -> None:
    """List loans."""
    ledger = _ledger()
    try:
        if patron:
            loans = ledger.loans_for(_resolve_patron(ledger.accounts, patron), open_only=not all_loans)
        else:
            loans = ledger.open_loans()
    except CirculationError as e:
        _fail(e)

    if not loans:
        print_info("No loans found")
        return
    _print_loans([ledger.summarize(loan) for loan in loans])


@loan_app.command("overdue")
def loan_overdue(
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Date to check (YYYY-MM-DD)"),
) -> None:
    """Show overdue loans."""
    day = _parse_date(as_of)
    ledger = _ledger()
    loans = ledger.overdue_loans(day)

    if not loans:
        print_success("No overdue loans!")
        return

    summaries = [ledger.summarize(loan, day) for loan in loans]
    console.print(Panel(
        f"[bold red]Overdue loans: {len(summaries)}[/bold red]\n"
        f"Oldest: {max(s.days_overdue for s in summaries)} days overdue\n"
        f"Fees accruing: {format_cents(sum(s.late_fee_cents for s in summaries))}",
        style="red",
    ))
    _print_loans(summaries, title="Overdue")


# ============================================================================
# Item Commands
# ============================================================================


@item_app.command("show")
def item_show(
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Show an item's status, queue and history."""
    ledger = _ledger()
    try:
        state = ledger.item_state(item_id)
        history = ledger.item_history(item_id)
    except CirculationError as e:
        _fail(e)

    lines = [
        f"[bold]{state.title}[/bold]",
        f"Status: {state.status.value}",
        f"Borrowed {state.borrow_count} times",
        f"Queue: {len(state.queue)} waiting",
    ]
    if state.hold_until:
        lines.append(f"Held until: {state.hold_until.isoformat()}")
    console.print(Panel("\n".join(lines), title="Item", border_style="blue"))

    for entry in history[-10:]:
        console.print(f"  {entry.created_at[:10]}  {entry.action:<9} {entry.patron_id}")


@item_app.command("withdraw")
def item_withdraw(
    item_id: str = typer.Argument(..., help="Item ID"),
    status: ItemStatus = typer.Argument(..., help="lost, damaged or maintenance"),
    reason: Optional[str] = typer.Option(None, "--reason", "-r", help="Reason"),
) -> None:
    """Take an item out of circulation."""
    try:
        item = _ledger().mark_unavailable(item_id, status, reason)
    except CirculationError as e:
        _fail(e)
    print_success(f"Item marked {item.status}")


@item_app.command("restore")
def item_restore(
    item_id: str = typer.Argument(..., help="Item ID"),
) -> None:
    """Put a withdrawn item back into circulation."""
    try:
        item = _ledger().restore(item_id)
    except CirculationError as e:
        _fail(e)
    print_success(f"Item restored as {item.status}")


@item_app.command("remove")
def item_remove(
    item_id: str = typer.Argument(..., help="Item ID"),
    reason: Optional[str] = typer.Option(None, "--reason", "-r", help="Reason"),
) -> None:
    """Delete a copy that nobody has on loan or reserved."""
    try:
        _ledger().remove_item(item_id, reason)
    except CirculationError as e:
        _fail(e)
    print_success(f"Removed item {item_id}")


# ============================================================================
# Notification Commands
# ============================================================================


@notify_app.command("list")
def notify_list(
    patron: str = typer.Argument(..., help="Patron ID or name"),
    all_notes: bool = typer.Option(False, "--all", "-a", help="Include read notifications"),
) -> None:
    """Show a patron's notifications."""
    db = _db()
    try:
        patron_id = _resolve_patron(_patrons(), patron)
    except CirculationError as e:
        _fail(e)
    notes = NotificationDispatcher(db).all_for(patron_id, unread_only=not all_notes)

    if not notes:
        print_info("No notifications")
        return

    for note in notes:
        marker = "[dim]" if note.read else "[bold]"
        console.print(f"{marker}#{note.id} ({note.kind}) {escape(note.message)}[/]")


@notify_app.command("read")
def notify_read(
    notification_id: Optional[int] = typer.Argument(None, help="Notification ID"),
    patron: Optional[str] = typer.Option(None, "--patron", "-p", help="Mark all read for a patron"),
) -> None:
    """Mark notifications read."""
    dispatcher = NotificationDispatcher(_db())
    try:
        if patron:
            count = dispatcher.mark_all_read(_resolve_patron(_patrons(), patron))
            print_success(f"Marked {count} notifications read")
            return
        if notification_id is None:
            print_error("Give a notification ID or --patron")
            raise typer.Exit(1)
        dispatcher.mark_read(notification_id)
    except CirculationError as e:
        _fail(e)
    print_success("Marked read")


# ============================================================================
# Sweep and Statistics
# ============================================================================


@app.command()
def sweep(
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Date to sweep as (YYYY-MM-DD)"),
) -> None:
    """Record due-soon reminders and overdue notices."""
    report = _ledger().sweep(_parse_date(as_of))
    print_success(
        f"Scanned {report.scanned} open loans: "
        f"{report.due_soon} due-soon, {report.overdue} overdue notices"
    )


@app.command()
def stats() -> None:
    """Show circulation statistics."""
    ledger = _ledger()
    s = ledger.stats()

    console.print(Panel(
        f"Items: {s.total_items}\n"
        f"Open loans: {s.open_loans} ({s.overdue_loans} overdue)\n"
        f"Total loans: {s.total_loans}\n"
        f"Pending reservations: {s.pending_reservations}\n"
        f"Fees assessed: {format_cents(s.fees_assessed_cents)}",
        title="Circulation",
        border_style="blue",
    ))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Status")
    table.add_column("Items", justify="right")
    for status, count in s.items_by_status.items():
        if count:
            table.add_row(status, str(count))
    console.print(table)

    top = [(item_id, n) for item_id, n in ledger.most_borrowed(5) if n]
    if top:
        console.print("[bold]Most borrowed:[/bold]")
        for item_id, n in top:
            console.print(f"  {n:>3}  {item_id}")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"circdesk version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
