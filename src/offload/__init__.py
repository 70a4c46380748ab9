"""Offload — run selected Python functions in containers, called like local ones.

Mark functions in ``*_container.py`` modules, and offload generates an
async proxy per function, a dispatch surface for the container and a
bundled server artifact.  Host code awaits the proxy; the call is routed by
its container key to a backend instance and executed there.

Container module::

    from __generated__.runtime import container_fn, container_key

    @container_fn(key=container_key(lambda ctx: f"user-{ctx.args[0]}"))
    def profile(user_id: str) -> dict:
        ...

Host code (with the import hook installed)::

    import offload

    offload.install_import_hook(".", offload.load_config("."))
    from profile_container import profile   # generated proxy

    data = await profile("u-42")

Command line::

    offload generate          # one regeneration cycle
    offload build             # release artifacts under dist/
    offload dev -- uvicorn app:app --port 8000
"""

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "DevLoopCoordinator",
    "OffloadConfig",
    "OffloadError",
    "Orchestrator",
    "PackagingError",
    "RemoteCallError",
    "RoutingError",
    "RpcError",
    "install_import_hook",
    "load_config",
    "set_container_key_resolver",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import offload`` cheap inside the bundled container server.
    """
    if name in ("OffloadConfig", "load_config"):
        from offload import config as _config

        return getattr(_config, name)

    if name in (
        "ConfigurationError",
        "OffloadError",
        "PackagingError",
        "RemoteCallError",
        "RoutingError",
        "RpcError",
    ):
        from offload import errors as _errors

        return getattr(_errors, name)

    if name == "Orchestrator":
        from offload.orchestrator.regen import Orchestrator

        return Orchestrator

    if name == "DevLoopCoordinator":
        from offload.orchestrator.coordinator import DevLoopCoordinator

        return DevLoopCoordinator

    if name == "install_import_hook":
        from offload.importer import install_import_hook

        return install_import_hook

    if name == "set_container_key_resolver":
        from offload.runtime.keys import set_container_key_resolver

        return set_container_key_resolver

    msg = f"module 'offload' has no attribute {name!r}"
    raise AttributeError(msg)
