"""
HabitVault: Streamlit client for the HabitVault habit-tracking API.
"""

from habitvault.db import init_db

__version__ = "0.1.0"

__all__ = ["init_db", "__version__"]
