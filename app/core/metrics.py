"""
Prometheus metrics shared across the application
"""

from prometheus_client import Counter, Histogram, Gauge

REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
ACTIVE_CONNECTIONS = Gauge('http_active_connections', 'Number of active HTTP connections')

QUOTE_API_CALLS = Counter('quote_api_calls_total', 'Upstream quote API calls', ['status'])
SIMULATED_QUOTES = Counter('simulated_quotes_total', 'Quotes answered with simulated data', ['reason'])
VALUATION_COUNT = Counter('portfolio_valuations_total', 'Portfolio valuations', ['status'])
VALUATION_PASS_DURATION = Histogram('valuation_pass_duration_seconds', 'Duration of a scheduled valuation pass')
CONTEST_JOIN_COUNT = Counter('contest_joins_total', 'Total contest joins', ['status'])
CONTESTS_CREATED = Counter('contests_created_total', 'Contests created by the daily generator')
CONTESTS_SETTLED = Counter('contests_settled_total', 'Contests settled by the prize distributor')
PRIZE_PAYOUTS = Counter('prize_payouts_total', 'Coins credited as contest prizes')
WS_CONNECTIONS = Gauge('ws_connections', 'Connected realtime clients')
WS_MESSAGES = Counter('ws_messages_sent_total', 'Realtime messages delivered', ['type'])
