"""Exceptions raised by the core for invalid configuration.

Data problems (missing fields, unparseable values, empty inputs) never raise;
they degrade to documented defaults.
"""


class InvalidConfigurationError(ValueError):
    """A threshold table, window or option handed to the core is malformed"""

    pass
