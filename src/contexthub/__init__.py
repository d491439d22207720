"""contexthub — local context daemon serving ranked project knowledge over HTTP."""

__version__ = "0.1.0"
