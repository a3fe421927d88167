"""Mirror a Backlog document tree into a Notion page tree."""

__version__ = "0.3.0"
