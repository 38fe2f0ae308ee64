"""Top-level pytest configuration for plugin fixture registration.

``pytest_plugins`` must be declared in a conftest at the rootdir.
"""

pytest_plugins = [
    "tests.fixtures.upstream",
]
