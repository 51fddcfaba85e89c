class EscrowError(Exception):
    pass


class ValidationError(EscrowError):
    pass


class InvalidAmountError(ValidationError):
    pass


class PredictionInvalidError(ValidationError):
    pass


class InvalidOutcomeError(ValidationError):
    pass


class PreconditionError(EscrowError):
    pass


class PoolNotFoundError(PreconditionError):
    pass


class PoolNotPendingError(PreconditionError):
    pass


class NotEligibleError(PreconditionError):
    pass


class InsufficientFundsError(PreconditionError):
    pass


class DuplicateEntryError(PreconditionError):
    pass


class UserNotFoundError(PreconditionError):
    pass


class CodeInvalidError(PreconditionError):
    pass


class NotResolvedError(PreconditionError):
    pass


class InvalidStateTransitionError(PreconditionError):
    pass


class DependencyError(EscrowError):
    pass


class ResolutionUnavailableError(DependencyError):
    pass


class IntegrityFailure(EscrowError):
    pass
