"""
Core gateway components: interface, errors, configuration, credentials,
HTTP capability, provider registry and the gateway itself.

Import from the submodules; this package initializer stays empty so that
the models package can depend on `core.errors` without a cycle.
"""
