"""
tools/ - Operator utility functions.

Contains:
- admin_tools: Balances, prices, positions, open orders and the trading switch
"""
