"""Configuration package.

Note: settings are built from the environment when
``circulation.config.settings`` is first imported. Services take a
:class:`~circulation.config.policy.Policy` argument instead, so tests can
construct them without touching the environment.
"""

__all__: list[str] = []
