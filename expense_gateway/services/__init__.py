# ==== SERVICES PACKAGE ==== #

"""
Resource clients for the expense-management API.

Each client turns domain calls (list expenses, fetch a budget, log in) into
requests routed through a ``RequestDispatcher`` and returns the response
payload, so resilience applies uniformly to every resource.
"""
