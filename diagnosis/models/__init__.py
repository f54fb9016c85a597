from diagnosis.models.user import User
from diagnosis.models.progress import UserProgress

__all__ = [
    'User',
    'UserProgress'
]
