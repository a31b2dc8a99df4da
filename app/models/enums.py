import enum


class ObligationStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CLICK = "CLICK"
    PAYME = "PAYME"
    UZUM = "UZUM"
    CARD = "CARD"

    @property
    def is_cash(self) -> bool:
        return self is PaymentMethod.CASH


class SubjectKind(str, enum.Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    STAFF = "STAFF"


class ObligationKind(str, enum.Enum):
    TUITION = "TUITION"  # money received
    SALARY = "SALARY"  # money paid out


class ObligationType(str, enum.Enum):
    # tuition side
    TUITION = "TUITION"
    CONTRACT = "CONTRACT"
    DORMITORY = "DORMITORY"
    OTHER = "OTHER"
    # salary side
    MONTHLY_SALARY = "MONTHLY_SALARY"
    ADVANCE = "ADVANCE"
    BONUS = "BONUS"


TUITION_TYPES = (ObligationType.TUITION, ObligationType.CONTRACT, ObligationType.DORMITORY, ObligationType.OTHER)
SALARY_TYPES = (ObligationType.MONTHLY_SALARY, ObligationType.ADVANCE, ObligationType.BONUS)

# the type a bulk generation run creates for each kind
RECURRING_TYPE = {
    ObligationKind.TUITION: ObligationType.TUITION,
    ObligationKind.SALARY: ObligationType.MONTHLY_SALARY,
}


class ExpenseSource(str, enum.Enum):
    GENERAL = "GENERAL"
    KITCHEN = "KITCHEN"
    SALARY = "SALARY"  # reporting only; read from salary contributions


def kind_for_subject(subject_kind: SubjectKind) -> ObligationKind:
    if subject_kind is SubjectKind.STUDENT:
        return ObligationKind.TUITION
    return ObligationKind.SALARY
