# Automatically load all models so metadata knows them
from app.models.student_model import Student
from app.models.employee_model import Teacher, Staff
from app.models.rate_change_model import RateChange
from app.models.obligation_model import Obligation, ObligationContribution
from app.models.expense_model import ExpenseCategory, Expense
