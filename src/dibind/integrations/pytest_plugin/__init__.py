from dibind.integrations.pytest_plugin.plugin import dibind_container

__all__ = ["dibind_container"]
