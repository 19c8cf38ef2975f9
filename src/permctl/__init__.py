"""permctl - temporary sudo permission manager."""

__version__ = "0.1.0"
