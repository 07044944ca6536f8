# ==== EXPENSE GATEWAY ==== #

"""
Resilient client-side gateway for the expense-management API.

Application code hands requests to a ``RequestDispatcher``, which guards each
endpoint with a circuit breaker and a throttle window, retries transient
server failures, and keeps reads answering from cache or fallback data while
the backend is degraded.
"""

__version__ = "0.1.0"
