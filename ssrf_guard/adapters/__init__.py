"""Client library adapters for ssrf-guard.

Public API:
    GuardedNetworkBackend — httpcore backend over a guarded connection factory
    guarded_async_client  — httpx.AsyncClient using that backend
"""

from ssrf_guard.adapters.httpx_backend import GuardedNetworkBackend, guarded_async_client

__all__ = ["GuardedNetworkBackend", "guarded_async_client"]
