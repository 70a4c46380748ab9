"""Batched RPC between generated proxies and container backends.

The server half (``offload.rpc.server``) imports nothing beyond the
standard library and ``offload.rpc.wire`` at module level, so it can be
bundled into the container artifact on its own.  The client half needs
``httpx`` and lives only in the host process.
"""
