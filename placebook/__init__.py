"""
Placebook identity API.

Registration, login, token sessions and profile management for the
Placebook travel photo-sharing app.
"""

__version__ = "1.0.0"
