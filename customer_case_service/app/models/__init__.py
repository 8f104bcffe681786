from .customer_reference import CustomerKind, CustomerReference, ContactReference
from .case_db import CaseDB, CaseState
from .organization_db import OrganizationDB, OrganizationContact
from .individual_db import IndividualDB

__all__ = [
    "CustomerKind",
    "CustomerReference",
    "ContactReference",
    "CaseDB",
    "CaseState",
    "OrganizationDB",
    "OrganizationContact",
    "IndividualDB",
]
