"""ORM models for the benefits engine."""

from benefits_engine.models.base import Base, TimestampMixin, utcnow
from benefits_engine.models.employee import Approver, Employee
from benefits_engine.models.loans import (
    CarLoanDeduction,
    DeductionEntryMixin,
    HousingLoanDeduction,
    LoanPaymentHistory,
    SalaryLoanDeduction,
)
from benefits_engine.models.notifications import Notification
from benefits_engine.models.requests import (
    ApprovalRecordMixin,
    BenefitRequestMixin,
    BookingCancellation,
    CarLoan,
    CarLoanApproval,
    HouseBooking,
    HouseBookingApproval,
    HousingLoan,
    HousingLoanApproval,
    LoanMixin,
    MedicalLoa,
    MedicalLoaApproval,
    MedicalReimbursement,
    MedicalReimbursementApproval,
    SalaryLoan,
    SalaryLoanApproval,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Approver",
    "Employee",
    "ApprovalRecordMixin",
    "BenefitRequestMixin",
    "BookingCancellation",
    "CarLoan",
    "CarLoanApproval",
    "CarLoanDeduction",
    "DeductionEntryMixin",
    "HouseBooking",
    "HouseBookingApproval",
    "HousingLoan",
    "HousingLoanApproval",
    "HousingLoanDeduction",
    "LoanMixin",
    "LoanPaymentHistory",
    "MedicalLoa",
    "MedicalLoaApproval",
    "MedicalReimbursement",
    "MedicalReimbursementApproval",
    "Notification",
    "SalaryLoan",
    "SalaryLoanApproval",
    "SalaryLoanDeduction",
]
