#!/usr/bin/env python3
"""Command-line front end for Recetas.

Photograph what is in your kitchen, confirm the detected ingredients and get
2-3 recipe ideas. Every successful generation is saved to a local history
(10 most recent).

Usage:
    python query.py --image fridge.jpg --image pantry.png
    python query.py --image fridge.jpg --vegetarian --servings 4 --exclude "nuts"
    python query.py --ingredients "huevo, pan, tomate" --quick
    python query.py --image fridge.jpg --add "queso" --remove "cerveza"
    python query.py --debug --ingredients "arroz, pollo"   # Also print the recipes as JSON
    python query.py --stateless --ingredients "arroz"       # Do not read or write history
    python query.py --history                               # List saved generations
    python query.py --history-show <ID>                     # Show a saved generation
    python query.py --history-delete <ID>
    python query.py --history-clear
"""

import asyncio
import base64
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from recetas.flow.session import MISSING_KEY_MESSAGE, CookingSession
from recetas.models.models import HistoryItem, Preferences, Recipe
from recetas.storage.history import FileStorage, HistoryStore, MemoryStorage
from recetas.utils.config import config
from recetas.utils.logger import logger

console = Console()

MIN_SERVINGS = 1
MAX_SERVINGS = 8

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
}

FLAG_OPTIONS = {
    "--quick": "quick",
    "--healthy": "healthy",
    "--no-oven": "no_oven",
    "--vegetarian": "vegetarian",
}

VALUE_OPTIONS = ("--image", "--ingredients", "--add", "--remove", "--servings", "--exclude",
                 "--history-show", "--history-delete")

USAGE = 'Usage: python query.py [--image PATH ...] [--ingredients "a, b"] [--add NAME] [--remove NAME] \\\n' \
        "       [--quick] [--healthy] [--no-oven] [--vegetarian] [--servings N] [--exclude TEXT] \\\n" \
        "       [--debug] [--stateless] | --history | --history-show ID | --history-delete ID | --history-clear"


class UsageError(Exception):
    pass


def load_image_source(value: str) -> str:
    """Turn a CLI image argument into a data URL (local file) or pass a URL through."""
    if value.startswith(("http://", "https://", "data:")):
        return value

    image_file = Path(value)
    if not image_file.exists():
        raise UsageError(f"Image file not found: {value}")

    image_bytes = image_file.read_bytes()
    mime_type = MIME_TYPES.get(image_file.suffix.lower(), "image/jpeg")
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    logger.info(f"✓ Loaded image: {image_file.name} ({len(image_bytes) / 1024:.1f} KB)")
    return f"data:{mime_type};base64,{encoded}"


def split_ingredients(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_args(argv: list[str]) -> dict:
    """Parse command-line flags into an options dict.

    Raises:
        UsageError: Unknown flag, missing value or invalid servings.
    """
    options = {
        "images": [],
        "ingredients": [],
        "add": [],
        "remove": [],
        "flags": {},
        "servings": 2,
        "exclude": "",
        "debug": False,
        "stateless": False,
        "command": "flow",
        "history_id": None,
    }

    idx = 0
    while idx < len(argv):
        arg = argv[idx]
        value: Optional[str] = None
        if arg in VALUE_OPTIONS:
            idx += 1
            if idx >= len(argv):
                raise UsageError(f"{arg} flag requires a value")
            value = argv[idx]

        if arg in FLAG_OPTIONS:
            options["flags"][FLAG_OPTIONS[arg]] = True
        elif arg == "--image":
            options["images"].append(value)
        elif arg == "--ingredients":
            options["ingredients"].extend(split_ingredients(value))
        elif arg == "--add":
            options["add"].append(value)
        elif arg == "--remove":
            options["remove"].append(value)
        elif arg == "--servings":
            try:
                servings = int(value)
            except ValueError:
                raise UsageError(f"--servings must be a number, got: {value}")
            if not MIN_SERVINGS <= servings <= MAX_SERVINGS:
                raise UsageError(f"--servings must be between {MIN_SERVINGS} and {MAX_SERVINGS}, got: {servings}")
            options["servings"] = servings
        elif arg == "--exclude":
            options["exclude"] = value
        elif arg == "--debug":
            options["debug"] = True
        elif arg == "--stateless":
            options["stateless"] = True
        elif arg == "--history":
            options["command"] = "history"
        elif arg == "--history-clear":
            options["command"] = "history-clear"
        elif arg in ("--history-show", "--history-delete"):
            options["command"] = arg.lstrip("-")
            options["history_id"] = value
        else:
            raise UsageError(f"Unknown flag: {arg}")
        idx += 1

    if len(options["images"]) > config.MAX_IMAGES:
        raise UsageError(f"At most {config.MAX_IMAGES} images are allowed, got {len(options['images'])}")

    return options


def build_preferences(options: dict) -> Preferences:
    return Preferences(servings=options["servings"], allergies=options["exclude"], **options["flags"])


def render_recipe_markdown(recipe: Recipe) -> str:
    """Format a recipe as Markdown for terminal display."""
    lines = [
        f"## {recipe.name}",
        f"⏱ {recipe.time} · {recipe.difficulty} · {recipe.servings} servings",
        "",
        "### Ingredients",
    ]
    lines.extend(f"- {'✅' if ingredient.has_it else '🛒'} {ingredient.name}" for ingredient in recipe.ingredients)
    if recipe.missing_ingredients:
        lines.extend(["", f"**To buy:** {', '.join(recipe.missing_ingredients)}"])
    lines.extend(["", "### Steps"])
    lines.extend(f"{number}. {step}" for number, step in enumerate(recipe.steps, start=1))
    if recipe.tips:
        lines.extend(["", f"> 💡 {recipe.tips}"])
    return "\n".join(lines)


def print_recipes(recipes: list[Recipe], debug: bool = False) -> None:
    if not recipes:
        console.print("[yellow]The model returned no recipes. Try different ingredients.[/yellow]")
        return

    if debug:
        console.print("[bold cyan]Debug Mode: Full Response[/bold cyan]")
        console.print_json(data=[recipe.model_dump(by_alias=True, exclude_none=True) for recipe in recipes])
        console.print()

    for recipe in recipes:
        console.print(Markdown(render_recipe_markdown(recipe)))
        console.print()


def format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%d %b %H:%M")


def print_history(items: list[HistoryItem]) -> None:
    if not items:
        console.print("No saved searches yet. Generated recipes will appear here.")
        return

    table = Table(title="Recipe history")
    table.add_column("ID", style="dim")
    table.add_column("When")
    table.add_column("Ingredients")
    table.add_column("Options", justify="right")
    for item in items:
        table.add_row(item.id, format_timestamp(item.timestamp), ", ".join(item.ingredients), str(len(item.recipes)))
    console.print(table)


def report_failure(session: CookingSession) -> bool:
    """Print the session's failure state. Returns True if there was one."""
    if session.needs_api_key:
        console.print(f"[red]✗ {MISSING_KEY_MESSAGE}[/red]")
        return True
    if session.error:
        console.print(f"[red]✗ {session.error}[/red]")
        return True
    return False


def run_history_command(store: HistoryStore, command: str, history_id: Optional[str]) -> int:
    if command == "history":
        print_history(store.items)
    elif command == "history-show":
        item = store.get(history_id)
        if item is None:
            console.print(f"[red]✗ No history entry with id {history_id}[/red]")
            return 1
        console.print(f"[bold]Ingredients:[/bold] {', '.join(item.ingredients)}\n")
        print_recipes(item.recipes)
    elif command == "history-delete":
        store.remove(history_id)
        console.print(f"Deleted {history_id} from history.")
    elif command == "history-clear":
        store.clear()
        console.print("History cleared.")
    return 0


async def run_flow(session: CookingSession, options: dict) -> int:
    """Run photo analysis (optional) then recipe generation."""
    if options["images"]:
        images = [load_image_source(value) for value in options["images"]]
        console.print(f"Analyzing {len(images)} photo(s)...")
        await session.analyze(images)
        if report_failure(session):
            return 1

    for name in options["ingredients"] + options["add"]:
        session.add_ingredient(name)
    for name in options["remove"]:
        if name in session.ingredients:
            session.remove_ingredient(session.ingredients.index(name))

    if not session.ingredients:
        console.print("[yellow]No ingredients to cook with. Add photos or use --ingredients.[/yellow]")
        return 1

    console.print(f"[bold]Ingredients:[/bold] {', '.join(session.ingredients)}")
    console.print("Creating recipes...")
    await session.generate()
    if report_failure(session):
        return 1

    console.print()
    print_recipes(session.recipes, debug=options["debug"])
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 1

    try:
        options = parse_args(argv)
        storage = MemoryStorage() if options["stateless"] else FileStorage()
        store = HistoryStore(storage)

        if options["command"] != "flow":
            return run_history_command(store, options["command"], options["history_id"])

        session = CookingSession(store, build_preferences(options))
        return asyncio.run(run_flow(session, options))
    except UsageError as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        print(USAGE)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
