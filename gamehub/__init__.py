"""Games catalog backend with cookie-based access/refresh token sessions."""

__version__ = "0.1.0"
