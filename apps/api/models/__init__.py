"""Models package."""

from .user import User
from .secret import Secret
