"""profilekit - Lazily-loaded shell profile fragments as a CLI dispatcher.

Declarative fragments contribute tool wrappers and aliases around external
command-line tools. Tools are probed on first use and the results cached.
"""

__version__ = "1.0.0"
__author__ = "profilekit Team"
__license__ = "MIT"

__all__ = ["__version__", "__author__", "__license__"]
