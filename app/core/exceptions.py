"""
Domain exceptions
"""


class StockLeagueError(Exception):
    """Base class for application errors"""


class NotFoundError(StockLeagueError):
    """A referenced record does not exist"""


class PortfolioNotFoundError(NotFoundError):
    def __init__(self, portfolio_id):
        super().__init__(f"Portfolio {portfolio_id} not found")
        self.portfolio_id = portfolio_id


class ContestNotFoundError(NotFoundError):
    def __init__(self, contest_id):
        super().__init__(f"Contest {contest_id} not found")
        self.contest_id = contest_id


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class ContestJoinError(StockLeagueError):
    """A join request was rejected by business rules"""


class PriceSourceUnavailableError(StockLeagueError):
    """The price source raised instead of falling back to simulated quotes"""
