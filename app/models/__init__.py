# Models Package
from .college import College
from .user import User
from .contest import Contest
from .portfolio import Portfolio, Holding
from .user_contest import UserContest
from .referral import Referral

__all__ = [
    "College",
    "User",
    "Contest",
    "Portfolio",
    "Holding",
    "UserContest",
    "Referral",
]
