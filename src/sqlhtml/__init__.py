"""sqlhtml — render the HTML output of interactive SQL clients as text."""

__version__ = "0.1.0"
