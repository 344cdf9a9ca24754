"""Bidboard CLI for setup, demo data and quick inspection."""

import asyncio
import random
import typer
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

app = typer.Typer(name="bidboard", help="Bidboard - collections marketplace with bidding")
console = Console()


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


STATUS_COLORS = {"pending": "yellow", "accepted": "green", "rejected": "red"}

COLLECTION_NAMES = [
    "Rare Digital Art Collection",
    "Vintage Photography Series",
    "Abstract Paintings Collection",
    "Modern Sculpture Gallery",
    "Street Art Compilation",
    "Nature Photography Bundle",
    "Portrait Photography Set",
    "Landscape Art Collection",
    "Contemporary Art Series",
    "Minimalist Art Collection",
    "Pop Art Gallery",
    "Watercolor Paintings Set",
    "Black & White Photography",
    "Vintage Poster Collection",
    "Botanical Illustrations",
]

DESCRIPTIONS = [
    "A curated collection of unique artworks",
    "Featuring exclusive pieces from renowned artists",
    "Limited edition collection with certificate of authenticity",
    "Handpicked selection of contemporary works",
    "Rare finds from emerging artists",
    "Signed and numbered limited series",
]


# ============================================================
# Setup Commands
# ============================================================

@app.command()
def setup():
    """Connect to the store and create indexes."""
    from .store import get_store, close_store

    async def _setup():
        console.print("[bold blue]Setting up Bidboard...[/]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Connecting to store...", total=None)
            store = get_store()
            if not await store.ping():
                console.print("[bold red]Store is not reachable.[/]")
                raise typer.Exit(code=1)
            progress.update(task, description="Connected!")

            progress.add_task("Creating indexes...", total=None)
            await store.init()
            await close_store()

        console.print("[bold green]Setup complete![/]")

    run_async(_setup())


@app.command()
def seed(
    users: int = typer.Option(10, help="Number of demo users"),
    collections: int = typer.Option(15, help="Number of collections"),
    max_bids: int = typer.Option(8, help="Maximum bids per collection"),
    password: str = typer.Option("password123", help="Password for every demo user"),
):
    """Fill the store with demo users, collections and bids."""
    from .config import get_settings
    from .store import get_store, close_store
    from .errors import ConflictError, ValidationError
    from .users import register_user, login_user
    from .catalog import create_collection
    from .bidding import submit_bid, reject_bid

    if get_settings().storage_backend == "memory":
        console.print("[yellow]Memory backend selected; seeded data will vanish on exit.[/]")

    async def _seed():
        store = get_store()
        await store.init()

        user_ids = []
        for i in range(1, users + 1):
            email = f"user{i}@example.com"
            try:
                result = await register_user(store, email, password, f"User {i}")
            except ConflictError:
                result = await login_user(store, email, password)
            user_ids.append(result["user"]["user_id"])

        created = []
        for i in range(collections):
            owner_id = random.choice(user_ids)
            price = float(random.randint(100, 5000))
            collection = await create_collection(
                store,
                owner_id=owner_id,
                name=COLLECTION_NAMES[i] if i < len(COLLECTION_NAMES) else f"Collection {i + 1}",
                description=random.choice(DESCRIPTIONS),
                stocks=random.randint(1, 50),
                price=price,
            )
            created.append(collection)

        bid_count = 0
        rejected_count = 0
        for collection in created:
            bidders = [u for u in user_ids if u != collection["user_id"]]
            for bidder_id in random.sample(bidders, min(len(bidders), random.randint(1, max_bids))):
                offer = collection["price"] + random.randint(-500, 1000)
                try:
                    bid = await submit_bid(
                        store,
                        bidder_id,
                        collection["collection_id"],
                        offer if offer > 0 else collection["price"] + 50,
                    )
                except ValidationError:
                    continue  # bidder already has a pending bid here
                bid_count += 1

                if random.random() < 0.25:
                    await reject_bid(
                        store, collection["collection_id"], bid["bid_id"], collection["user_id"]
                    )
                    rejected_count += 1

        await close_store()
        return len(user_ids), len(created), bid_count, rejected_count

    n_users, n_collections, n_bids, n_rejected = run_async(_seed())

    console.print(Panel(
        f"""[bold]Users:[/] {n_users} (password: {password})
[bold]Collections:[/] {n_collections}
[bold]Bids:[/] {n_bids} ({n_rejected} rejected)""",
        title="[green]Seed Complete[/]",
    ))


# ============================================================
# Inspection Commands
# ============================================================

@app.command()
def list_collections(limit: int = typer.Option(20, help="How many to show")):
    """List the most recent collections."""
    from .store import get_store, close_store
    from .catalog import list_collections as do_list

    async def _list():
        store = get_store()
        collections = await do_list(store, limit)
        await close_store()
        return collections

    collections = run_async(_list())
    if not collections:
        console.print("[yellow]No collections yet.[/]")
        return

    table = Table(title="Collections")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Owner")
    table.add_column("Stocks", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Bids", justify="right")

    for c in collections:
        owner = c.get("user") or {}
        pending = sum(1 for b in c["bids"] if b["status"] == "pending")
        table.add_row(
            c["collection_id"],
            c["name"],
            owner.get("name", "?"),
            str(c["stocks"]),
            f"{c['price']:.2f}",
            f"{len(c['bids'])} ({pending} pending)",
        )

    console.print(table)


@app.command()
def show_bids(collection_id: str = typer.Argument(..., help="Collection ID")):
    """Show the bids on one collection."""
    from .store import get_store, close_store
    from .bidding import list_bids_for_collection
    from .errors import NotFoundError

    async def _show():
        store = get_store()
        try:
            return await list_bids_for_collection(store, collection_id)
        finally:
            await close_store()

    try:
        bids = run_async(_show())
    except NotFoundError as e:
        console.print(f"[bold red]{e.message}[/]")
        raise typer.Exit(code=1)

    if not bids:
        console.print("[yellow]No bids on this collection.[/]")
        return

    table = Table(title=f"Bids on {bids[0]['collection']['name']}")
    table.add_column("Bid", style="cyan")
    table.add_column("Bidder")
    table.add_column("Price", justify="right")
    table.add_column("Status")
    table.add_column("Placed")

    for b in bids:
        color = STATUS_COLORS.get(b["status"], "white")
        table.add_row(
            b["bid_id"],
            (b.get("user") or {}).get("name", "?"),
            f"{b['price']:.2f}",
            f"[{color}]{b['status']}[/]",
            b["created_at"][:19],
        )

    console.print(table)


# ============================================================
# Demo Flow
# ============================================================

@app.command()
def flow(
    api_url: str = typer.Option(None, help="API base URL (defaults to settings)"),
):
    """Run owner/bidders/accept against a running API."""
    from uuid import uuid4
    from .client import BidboardClient
    from .config import get_settings
    from .errors import InvalidStateError

    base_url = api_url or get_settings().api_url
    run_id = uuid4().hex[:6]

    async def _flow():
        async with BidboardClient(base_url) as owner, \
                BidboardClient(base_url) as alice, \
                BidboardClient(base_url) as bob:
            await owner.register(f"owner-{run_id}@example.com", "password123", "Owner")
            await alice.register(f"alice-{run_id}@example.com", "password123", "Alice")
            await bob.register(f"bob-{run_id}@example.com", "password123", "Bob")
            console.print("[1] Registered owner, alice and bob")

            collection = await owner.create_collection(
                "Demo Collection", stocks=5, price=1000.0, description="Created by bidboard flow"
            )
            collection_id = collection["collection_id"]
            console.print(f"[2] Owner created {collection_id}")

            alice_bid = await alice.place_bid(collection_id, 1200.0)
            bob_bid = await bob.place_bid(collection_id, 1300.0)
            console.print(f"[3] Alice bid 1200.00 ({alice_bid['bid_id']}), Bob bid 1300.00 ({bob_bid['bid_id']})")

            result = await owner.accept_bid(collection_id, alice_bid["bid_id"])
            console.print(f"[4] Owner accepted Alice's bid, {result['rejected_count']} rejected")

            try:
                await bob.update_bid(bob_bid["bid_id"], 1400.0)
            except InvalidStateError as e:
                console.print(f"[5] Bob cannot update anymore: {e.message}")
            else:
                console.print("[bold red][5] Bob updated a rejected bid![/]")
                raise typer.Exit(code=1)

            return await owner.list_bids(collection_id)

    bids = run_async(_flow())
    for b in bids:
        color = STATUS_COLORS.get(b["status"], "white")
        console.print(f"    {b['user']['name']}: {b['price']:.2f} [{color}]{b['status']}[/]")


if __name__ == "__main__":
    app()
