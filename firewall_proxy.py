import argparse
import signal
import sys
import threading

from rich import box
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from firewall.config import load_config
from firewall.FirewallProxyServer import start_server, stop_server
from firewall.logger import DashboardLogHandler, setup_logging
from firewall.ProxyClient import ProxyClient

console = Console()


# ========== Dashboard ==========

def build_dashboard(stats, logs):
    if stats['running']:
        state = "[bold green]🟢 Running[/bold green]"
    else:
        state = "[bold red]🔴 Stopped[/bold red]"

    status_panel = Panel(
        f"{state}\n"
        f"[bold]Port:[/bold] {stats['port']}\n"
        f"[bold]Uptime:[/bold] {stats['uptime']} sec",
        title="🛡️ [bold cyan]Firewall[/bold cyan]",
        border_style="green",
        padding=(1, 2),
    )

    traffic_panel = Panel(
        f"[bold]Active Connections:[/bold] {stats['active_connections']}\n"
        f"[bold]Total Connections:[/bold] {stats['total_connections']}\n"
        f"[bold]Blocked Requests:[/bold] {stats['blocked_requests']}",
        title="📊 [bold blue]Traffic[/bold blue]",
        border_style="blue",
        padding=(1, 2),
    )

    log_table = Table(title="🧾 [bold red]Recent Logs[/bold red]", expand=True, box=box.SIMPLE)
    log_table.add_column("Level", style="bold cyan", justify="center")
    log_table.add_column("Message", style="dim white", justify="left")
    for level, msg in list(logs):
        log_table.add_row(level, Text(msg))

    grid = Table.grid(expand=True)
    grid.add_row(status_panel, traffic_panel)
    grid.add_row(log_table)
    return grid


# ========== Commands ==========

def serve(config, show_dashboard=True):
    dashboard = DashboardLogHandler() if show_dashboard else None
    setup_logging(config.log_level, config.log_file, console=True, dashboard=dashboard)

    handle = start_server(config.port, host=config.host, config=config)
    if not handle.running:
        console.print(f"[bold red]Could not start the firewall server on {config.host}:{config.port}[/bold red]")
        return 1

    shutdown_flag = threading.Event()

    def shutdown(signum=None, frame=None):
        shutdown_flag.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        if dashboard is None:
            console.print(f"Firewall Server listening on {config.host}:{handle.port}, press Ctrl+C to stop")
            while not shutdown_flag.is_set() and handle.running:
                shutdown_flag.wait(0.5)
        else:
            with Live(build_dashboard(handle.server.stats(), dashboard.records), refresh_per_second=2, screen=True) as live:
                while not shutdown_flag.is_set() and handle.running:
                    shutdown_flag.wait(0.5)
                    live.update(build_dashboard(handle.server.stats(), dashboard.records))
    finally:
        stop_server(handle)
        handle.join(timeout=2)

    console.print("Goodbye 👋")
    return 0


def request(address, port, url, config):
    setup_logging('WARNING', None, console=True)
    client = ProxyClient(encoding=config.encoding)
    result = client.request(address, port, url)

    style = "red" if result.startswith(("Client Error:", "URL blocked", "HTTP Error:", "Error fetching")) else "green"
    console.print(Panel(Text(result), title=f"Firewall Result: {url}", border_style=style))
    return 0 if style == "green" else 2


# ========== CLI ==========

def build_parser():
    parser = argparse.ArgumentParser(description="Simple Firewall Proxy")
    parser.add_argument("-c", "--config", help="JSON configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    serve_parser = sub.add_parser("serve", help="Run the firewall server")
    serve_parser.add_argument("-H", "--host", help="Bind address")
    serve_parser.add_argument("-p", "--port", type=int, help="Port to listen")
    serve_parser.add_argument("--log-file", help="Rotating log file")
    serve_parser.add_argument("--log-level", help="Log level name")
    serve_parser.add_argument("--client-timeout", type=float, help="Read timeout on accepted connections")
    serve_parser.add_argument("--no-dashboard", action="store_true", help="Plain log output instead of the live dashboard")

    request_parser = sub.add_parser("request", help="Send a URL through a firewall server")
    request_parser.add_argument("url", help="URL to request (contains 'bad' to block)")
    request_parser.add_argument("-a", "--address", default="localhost", help="Server address")
    request_parser.add_argument("-p", "--port", type=int, help="Server port")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {escape(str(e))}")
        return 1

    if args.command == "serve":
        config = config.merged({
            'host': args.host,
            'port': args.port,
            'log_file': args.log_file,
            'log_level': args.log_level,
            'client_timeout': args.client_timeout,
        })
        return serve(config, show_dashboard=not args.no_dashboard)

    port = args.port if args.port is not None else config.port
    return request(args.address, port, args.url, config)


if __name__ == '__main__':
    sys.exit(main())
