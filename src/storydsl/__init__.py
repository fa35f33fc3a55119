"""StoryDSL: plain-text editing for branching story graphs."""

__version__ = "0.1.0"
