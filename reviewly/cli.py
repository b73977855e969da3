"""CLI entry point: walk the feedback flow in a terminal, or serve the web app."""

import argparse
import asyncio
import shutil
import subprocess
import sys
import webbrowser

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.status import Status
from rich.text import Text

from .config import Settings, configure_logging
from .flow import ClipboardError, FlowError, FlowServices, FlowSession

# First one found on PATH wins
CLIPBOARD_COMMANDS = (
    ("pbcopy",),
    ("wl-copy",),
    ("xclip", "-selection", "clipboard"),
    ("xsel", "--clipboard", "--input"),
    ("clip",),
)


def copy_to_clipboard(text: str):
    for command in CLIPBOARD_COMMANDS:
        if shutil.which(command[0]) is None:
            continue
        try:
            subprocess.run(command, input=text.encode(), check=True, timeout=5)
            return
        except (OSError, subprocess.SubprocessError) as e:
            raise ClipboardError(f"{command[0]} failed: {e}") from e
    raise ClipboardError("No clipboard command available.")


def open_in_browser(url: str):
    webbrowser.open_new_tab(url)


async def run_flow(session: FlowSession, console: Console) -> None:
    """Drive one session from prompts until the visitor quits."""
    status = Status("", console=console)

    status.start()
    status.update("[bold cyan]Loading business...[/]")
    try:
        await session.load()
    finally:
        status.stop()

    if not session.found:
        console.print("\n[bold red]Business Not Found[/]")
        console.print("The business you're looking for doesn't exist.\n")
        return

    business = session.business
    while True:
        console.print()
        try:
            choice = _prompt_step(session, console)
            if choice == "q":
                return
            if choice == "b":
                await session.back()
                continue

            if session.step == "experience":
                await session.go_to("keywords" if choice == "1" else "feedback")
            elif session.step == "keywords":
                if choice == "c":
                    await _show_status(status, "Writing your review...", session.go_to("review"))
                else:
                    session.toggle_keyword(session.keywords[int(choice) - 1].keyword)
            elif session.step == "review":
                if choice == "c":
                    session.copy_and_redirect(copy_to_clipboard, open_in_browser)
                    console.print(f"[green]{session.notice}[/] Opening {business.google_reviews_link}")
                elif choice == "r":
                    await _show_status(status, "Regenerating review...", session.regenerate())
            elif session.step == "feedback":
                if choice == "1":
                    await session.go_to("contact")
                else:
                    url = session.open_review_site(open_in_browser)
                    console.print(f"Opening {url}")
            elif session.step == "contact":
                email = Prompt.ask("Your email", console=console)
                message = Prompt.ask("Your message", console=console)
                await _show_status(status, "Sending...", session.submit_feedback(email, message))
                console.print(f"[bold green]{session.notice}[/]")
        except FlowError as e:
            console.print(f"[yellow]{e}[/]")


async def _show_status(status: Status, msg: str, coro):
    status.update(f"[bold cyan]{msg}[/]")
    status.start()
    try:
        return await coro
    finally:
        status.stop()


def _prompt_step(session: FlowSession, console: Console) -> str:
    business = session.business
    back = ["b"] if session.step != "experience" else []

    if session.step == "experience":
        console.print(Panel(f"Tell us about your experience at\n[bold]{escape(business.business_name)}[/]"))
        console.print("  1) I had a great time!\n  2) I did NOT have a great time")
        choices = ["1", "2"]
    elif session.step == "keywords":
        console.print(Panel("What did you enjoy most?"))
        for i, kw in enumerate(session.keywords, start=1):
            mark = "x" if kw.keyword in session.selected_keywords else " "
            console.print(f"  {i}) [{mark}] {kw.keyword}", markup=False)
        choices = [str(i) for i in range(1, len(session.keywords) + 1)]
        if session.can_advance:
            console.print("  c) Continue")
            choices.append("c")
    elif session.step == "review":
        console.print(Panel(Text(session.generated_review), title="Your review"))
        console.print("  c) Copy & post on Google\n  r) Regenerate review")
        choices = ["c", "r"]
    elif session.step == "feedback":
        console.print(Panel(
            "We sincerely apologize that your experience didn't meet expectations. "
            "Your feedback is valuable to us, and we'd like to make things right."
        ))
        console.print("  1) Reach out to manager\n  2) Leave a Google review")
        choices = ["1", "2"]
    else:
        console.print(Panel("Contact the manager"))
        console.print("  s) Send a message")
        choices = ["s"]

    if back:
        console.print("  b) Back")
    console.print("  q) Quit")
    return Prompt.ask("Choose", choices=choices + back + ["q"], console=console, show_choices=False)


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="reviewly",
        description="Collect customer feedback and draft reviews for a business.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Walk the feedback flow in the terminal")
    run_parser.add_argument("slug", help="Business slug, e.g. sushi-grill")

    serve_parser = subparsers.add_parser("serve", help="Run the web app")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    console = Console()
    try:
        settings = Settings.from_env()
        configure_logging(settings.log_level)

        if args.command == "serve":
            import uvicorn

            uvicorn.run("reviewly.web:app", host=args.host, port=args.port, log_config=None)
            return

        session = FlowSession(args.slug, FlowServices.from_settings(settings))
        asyncio.run(run_flow(session, console))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/]")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n[bold red]Error:[/] {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
