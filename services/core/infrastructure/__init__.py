# Infrastructure Layer
from .uow import (
    UnitOfWork,
    GoalRepository,
    ConflictRepository,
    AgreementRepository,
    create_uow_provider
)
