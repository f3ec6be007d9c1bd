# slot_engine/core/errors.py

# -----------------------------
# Base Errors
# -----------------------------

class SlotError(Exception):
    """Base class for all slot engine errors."""
    pass


# -----------------------------
# Validation / Lookup Errors
# -----------------------------

class SlotValidationError(SlotError):
    """Invalid input or illegal slot edit."""
    pass


class SlotNotFound(SlotError):
    pass


# -----------------------------
# Allocation Errors
# -----------------------------

class SlotAllocationFailed(SlotError):
    """Retry ceiling hit while finding or reserving a slot. Safe to retry."""
    pass


class SlotAllocationTimeout(SlotAllocationFailed):
    """Allocation deadline exceeded."""
    pass


class SlotPoolUnavailable(SlotError):
    """Slot tables are missing or the store is misconfigured."""
    pass


class SlotPoolCapacityReached(SlotError):
    """The pool already holds the maximum number of accounts."""
    pass


# -----------------------------
# Persistence Errors
# -----------------------------

class SlotPersistenceError(SlotError):
    pass


class AccountAlreadyExists(SlotPersistenceError):
    pass
