#!/usr/bin/env python3
"""Interactive chat CLI for the vault assistant service."""

import sys
import time

import httpx
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

STATUS_STYLES = {"success": "green", "error": "red", "running": "yellow", "pending": "dim"}


class ChatCLI:
    """Interactive chat interface for the vault assistant service."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.session_id: str | None = None
        self.console = Console()
        self.client = httpx.Client(timeout=300.0)

    def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]VaultPilot - Interactive Chat[/bold blue]\n"
                "Ask the assistant to read, write and organize notes in your vault.\n"
                "Commands: /help, /clear, /login, /models, /quit",
                border_style="blue",
            )
        )

        if not self._test_connection():
            self.console.print(f"[red]Cannot connect to the service at {self.base_url}.[/red]")
            return

        self.console.print("[green]Connected to VaultPilot[/green]\n")

        try:
            while True:
                user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                command = user_input.strip().lower()

                if command in ["/quit", "/exit", "quit", "exit"]:
                    break
                elif command == "/help":
                    self._show_help()
                    continue
                elif command == "/clear":
                    self._clear_session()
                    continue
                elif command == "/login":
                    self._login()
                    continue
                elif command == "/models":
                    self._show_models()
                    continue
                elif command == "":
                    continue

                response = self._send_message(user_input)
                if response:
                    self._display_response(response)

        except KeyboardInterrupt:
            self._cancel_run()
        finally:
            self.console.print("\n[yellow]Goodbye![/yellow]")
            self.client.close()

    def _test_connection(self) -> bool:
        """Test connection to the service."""
        try:
            response = self.client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def _send_message(self, message: str) -> dict | None:
        """Send message to the assistant."""
        payload = {"message": message}
        if self.session_id:
            payload["session_id"] = self.session_id

        try:
            with self.console.status("[dim]Thinking...[/dim]"):
                response = self.client.post(f"{self.base_url}/conversation", json=payload)
        except httpx.HTTPError as e:
            self.console.print(f"[red]Connection error: {e}[/red]")
            return None

        if response.status_code == 404:
            self.console.print("[yellow]Session expired, starting a new one.[/yellow]")
            self.session_id = None
            return None

        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return None

        data = response.json()
        self.session_id = data.get("session_id")
        return data

    def _display_response(self, response: dict) -> None:
        """Display tool activity and the assistant's answer."""
        for message in response.get("messages", []):
            for outcome in message.get("tool_results") or []:
                style = STATUS_STYLES.get(outcome["status"], "white")
                result = outcome.get("result") or ""
                detail = outcome.get("error") or (result.splitlines()[0] if result else "")
                self.console.print(f"[{style}]  {outcome['tool_name']} {outcome['status']}[/{style}] [dim]{detail}[/dim]")

        for error in response.get("errors", []):
            self.console.print(f"[red]{error}[/red]")

        self.console.print(
            Panel(
                Markdown(response.get("response", "No response")),
                title="[bold green]Assistant[/bold green]",
                border_style="green",
                padding=(1, 2),
            )
        )

    def _clear_session(self) -> None:
        if self.session_id:
            self.client.delete(f"{self.base_url}/conversation/{self.session_id}")
        self.session_id = None
        self.console.print("[yellow]Session cleared[/yellow]")

    def _cancel_run(self) -> None:
        if not self.session_id:
            return
        try:
            self.client.post(f"{self.base_url}/conversation/{self.session_id}/cancel")
        except httpx.HTTPError as e:
            self.console.print(f"[dim]Could not cancel the running request: {e}[/dim]")

    def _login(self) -> None:
        """Sign in with the GitHub device flow."""
        response = self.client.post(f"{self.base_url}/auth/device")
        if response.status_code != 200:
            self.console.print(f"[red]Could not start login: {response.text}[/red]")
            return

        device = response.json()
        self.console.print(
            Panel(
                f"Open [bold]{device['verification_uri']}[/bold] and enter the code "
                f"[bold magenta]{device['user_code']}[/bold magenta]",
                title="[cyan]GitHub Login[/cyan]",
                border_style="cyan",
            )
        )

        interval = device.get("interval", 5)
        deadline = time.monotonic() + device.get("expires_in", 900)
        with self.console.status("[dim]Waiting for authorization...[/dim]"):
            while time.monotonic() < deadline:
                time.sleep(interval)
                poll = self.client.post(
                    f"{self.base_url}/auth/device/poll", json={"device_code": device["device_code"]}
                ).json()
                if poll.get("authenticated"):
                    self.console.print("[green]Signed in[/green]")
                    return
                if poll.get("error"):
                    self.console.print(f"[red]Login failed: {poll['error']}[/red]")
                    return

        self.console.print("[red]Login code expired[/red]")

    def _show_models(self) -> None:
        response = self.client.get(f"{self.base_url}/models")
        if response.status_code != 200:
            self.console.print(f"[red]API Error: {response.status_code} - {response.text}[/red]")
            return

        table = Table(title="Available Models")
        table.add_column("Label")
        table.add_column("Model ID", style="dim")
        for model in response.json():
            table.add_row(model["label"], model["value"])
        self.console.print(table)

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /help - Show this help message
• /clear - Clear session and start over
• /login - Sign in to GitHub Copilot
• /models - List available chat models
• /quit or /exit - Exit the chat

[bold]Example Requests:[/bold]
1. "What files are in my vault?"
2. "Summarize notes/meeting.md"
3. "Create a daily note template in templates/"

[bold]Tips:[/bold]
• Press Ctrl+C to cancel a running request and exit
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]Help[/cyan]", border_style="cyan"))


def main():
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"

    chat = ChatCLI(base_url)
    chat.start()


if __name__ == "__main__":
    main()
