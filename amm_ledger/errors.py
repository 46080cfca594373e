"""
Error taxonomy for the AMM ledger.

Identity errors are raised before any state is read for writing, economic
errors after the would-be result is computed but before any write, and
numeric errors whenever checked arithmetic leaves its range. A raised error
always means the operation was a no-op.
"""


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


# --- Identity ---

class IdentityError(ValidationError):
    pass


class IdenticalAssets(IdentityError):
    pass


class UnorderedAssets(IdentityError):
    pass


class AlreadyExists(IdentityError):
    pass


class PoolNotFound(IdentityError):
    pass


# --- Economic ---

class EconomicError(ValidationError):
    pass


class ZeroAmount(EconomicError):
    pass


class ZeroLiquidity(EconomicError):
    pass


class RatioMismatch(EconomicError):
    pass


class InsufficientShares(EconomicError):
    pass


class InsufficientBalance(EconomicError):
    pass


class InsufficientVaultBalance(EconomicError):
    """Vault debit larger than its balance. Unreachable from correct engine logic."""
    pass


class InsufficientLiquidity(EconomicError):
    pass


class SlippageExceeded(EconomicError):
    pass


class EmptyPool(EconomicError):
    pass


# --- Numeric ---

class NumericError(ValidationError):
    pass


class ArithmeticOverflow(NumericError):
    pass


class InvariantViolation(NumericError):
    pass


# --- Authorization ---

class Unauthorized(ValidationError):
    pass


class InvalidSignature(Unauthorized):
    pass


class InvalidNonce(ValidationError):
    pass


class WrongChain(ValidationError):
    pass
