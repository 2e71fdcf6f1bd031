"""
Subscriptions App - recurring billing core.
Payment plans, subscriptions, payments, the billing calculator and the
scheduled lifecycle jobs that keep subscription state in line with payments.
"""
