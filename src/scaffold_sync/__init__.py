"""scaffold-sync: keep project scaffolding in sync with bundled templates."""

__version__ = "2.5.1"
