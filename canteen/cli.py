import asyncio
import logging

import click

from canteen.application.terminal import TerminalSession
from canteen.domain.events import DomainEvent
from canteen.infrastructure.http_gateway import HttpOrderGateway
from canteen.infrastructure.ws_event_stream import WebSocketEventStream

logger = logging.getLogger("canteen.terminal")


def build_session(api_url: str, ws_url: str, token: str) -> TerminalSession:
    return TerminalSession(
        gateway=HttpOrderGateway(api_url, token),
        stream=WebSocketEventStream(ws_url, token),
    )


def render(session: TerminalSession, role: str) -> str:
    lines = []
    if session.banner:
        lines.append(f"!! {session.banner}")
    if role == "kitchen":
        lines.append("Current:")
        lines += [f"  {t.quantity:>3} x {t.name}" for t in session.current_items()]
        for summary in session.lap_summaries():
            state = " (fully completed)" if summary.is_complete else ""
            lines.append(f"Lap {summary.lap.lap_number}{state}:")
            lines += [f"  {t.quantity:>3} x {t.name}" for t in summary.items]
    elif role == "pickup":
        lines += [f"  {o.order_number}  {o.customer_name}" for o in session.pickup_orders]
    else:
        snapshot = session.dashboard()
        lines += [f"  {status.value:<10} {count}" for status, count in snapshot.counts.items()]
        lines.append(f"  awaiting cash: {len(snapshot.pending_payments)}")
    return "\n".join(lines)


@click.command("canteen-terminal")
@click.option("--api-url", default="http://localhost:8000/api", show_default=True)
@click.option("--ws-url", default="ws://localhost:8000/ws", show_default=True)
@click.option("--token", envvar="STAFF_TOKEN", required=True)
@click.option("--role", type=click.Choice(["kitchen", "pickup", "dashboard"]), default="kitchen", show_default=True)
def main(api_url, ws_url, token, role):
    """Follow the staff room from the console and print the chosen view."""
    logging.basicConfig(level=logging.INFO)
    session = build_session(api_url, ws_url, token)

    def on_event(event: DomainEvent):
        click.echo(f"\n[{event.type.value}] {event.data.order_number}")
        click.echo(render(session, role))

    session.subscribe(None, on_event)

    async def _run():
        try:
            await session.run()
        finally:
            await session.close()
            await session.gateway.aclose()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("bye")


if __name__ == "__main__":
    main()
