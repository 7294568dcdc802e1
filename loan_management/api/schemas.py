"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


# Auth schemas
class LoginRequest(BaseModel):
    username: str
    password: str


# Customer schemas
class CreateCustomerRequest(BaseModel):
    full_name: str
    contact_number: str
    address: str
    id_type: str
    id_number: str
    date_registered: Optional[date] = None
    status: str = Field("Active", description="Active or Inactive")


class UpdateCustomerRequest(BaseModel):
    full_name: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    date_registered: Optional[date] = None
    status: Optional[str] = None


# Loan schemas
class CreateLoanRequest(BaseModel):
    customer_id: str
    loan_amount: Decimal
    interest_rate: Decimal = Field(..., description="Interest rate in percent")
    loan_term: str = Field(..., description="Weekly or Monthly")
    start_date: date
    end_date: date
    loan_status: str = Field("Pending", description="Pending, Approved, Active or Closed")


class UpdateLoanRequest(BaseModel):
    customer_id: Optional[str] = None
    loan_amount: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    loan_term: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    loan_status: Optional[str] = None


# Repayment schedule schemas
class CreateScheduleEntryRequest(BaseModel):
    loan_id: str
    due_date: date
    amount_due: Decimal
    outstanding_balance: Optional[Decimal] = None
    status: str = Field("Unpaid", description="Unpaid, Paid or Late")


class UpdateScheduleEntryRequest(BaseModel):
    due_date: Optional[date] = None
    amount_due: Optional[Decimal] = None
    outstanding_balance: Optional[Decimal] = None
    status: Optional[str] = None


# Payment schemas
class RecordPaymentRequest(BaseModel):
    loan_id: str
    amount_paid: Decimal
    payment_method: str = Field(..., description="Cash, Bank or E-Wallet")
    payment_date: Optional[date] = None
    customer_id: Optional[str] = None
    reference_number: Optional[str] = None


class AmendPaymentRequest(BaseModel):
    payment_date: Optional[date] = None
    amount_paid: Optional[Decimal] = None
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None


# User schemas
class CreateUserRequest(BaseModel):
    name: str
    username: str
    password: str
    role: str = Field(..., description="Admin, Loan Officer or Cashier")
    status: str = Field("Active", description="Active or Disabled")


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None
