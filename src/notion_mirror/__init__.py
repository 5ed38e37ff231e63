"""Mirror a local Markdown vault into a Notion page tree."""

__version__ = "0.4.0"
