import helpers  # noqa: F401  configures the environment before app modules import
