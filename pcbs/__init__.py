"""
Pool Contract Billing System.

Extracts customers, orders and item tables from emailed pool-construction
contracts and their hosted addenda, and reconciles progress billing.
"""

__version__ = '0.1.0'
