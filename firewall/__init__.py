from firewall.config import ProxyConfig, load_config
from firewall.ConnectionHandler import ConnectionHandler
from firewall.FilterPolicy import FilterPolicy
from firewall.FirewallProxyServer import FirewallProxyServer, ServerHandle, start_server, stop_server
from firewall.ProxyClient import ProxyClient, send_request
from firewall.UrlFetcher import UrlFetcher

__all__ = [
    "ConnectionHandler",
    "FilterPolicy",
    "FirewallProxyServer",
    "ProxyClient",
    "ProxyConfig",
    "ServerHandle",
    "UrlFetcher",
    "load_config",
    "send_request",
    "start_server",
    "stop_server",
]
