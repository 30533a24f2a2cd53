from __future__ import annotations


class ModelConfigError(Exception):
    """Base class for every error raised by modelcfg."""


class ValidationError(ModelConfigError):
    """A document or command does not have the expected shape."""


class NotFoundError(ModelConfigError):
    pass


class ModelNotFound(NotFoundError):
    pass


class FeatureNotBound(NotFoundError):
    pass


class BitfieldNotFound(NotFoundError):
    pass


class PresetNotFound(NotFoundError):
    pass


class UnknownEnumValue(NotFoundError):
    pass


class RangeError(ModelConfigError):
    """A bit width is outside [1, 32] or a value does not fit its field."""


class OverlapError(ModelConfigError):
    """Two attributes of a device model claim the same bit."""

    def __init__(self, msg: str, addr: int, field: str):
        super().__init__(msg)
        self.addr = addr
        self.field = field


class AllocationError(ModelConfigError):
    """The allocator left a hole in the bit address space."""


class MissingBitfieldError(ModelConfigError):
    """No bitfield starts at the address the serializer expected."""

    def __init__(self, msg: str, addr: int):
        super().__init__(msg)
        self.addr = addr
