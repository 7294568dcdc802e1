"""
Loan Management System

Customer registration, loan origination, repayment schedule tracking and
payment recording with role-based access control and Decimal money math.
"""

__version__ = "1.0.0"
