"""Tensor enumerations, status codes and their string forms for the NPU runtime."""

from __future__ import annotations

from enum import IntEnum, IntFlag

MAX_DIMS = 16
MAX_NUM_CHANNEL = 15
MAX_NAME_LEN = 256
MAX_DYNAMIC_SHAPE_NUM = 512

_UNKNOWN = "UNKNOW"


class TensorType(IntEnum):
    """Element type of a tensor."""

    FLOAT32 = 0
    FLOAT16 = 1
    INT8 = 2
    UINT8 = 3
    INT16 = 4
    UINT16 = 5
    INT32 = 6
    UINT32 = 7
    INT64 = 8
    BOOL = 9


class QuantType(IntEnum):
    """Quantisation scheme of a tensor."""

    NONE = 0
    DFP = 1
    AFFINE_ASYMMETRIC = 2


class TensorFormat(IntEnum):
    """Memory layout of a tensor."""

    NCHW = 0
    NHWC = 1
    NC1HWC2 = 2
    UNDEFINED = 3


class CoreMask(IntEnum):
    """NPU cores a context may run on."""

    AUTO = 0
    CORE_0 = 1
    CORE_1 = 2
    CORE_2 = 4
    CORE_0_1 = CORE_0 | CORE_1
    CORE_0_1_2 = CORE_0_1 | CORE_2
    UNDEFINED = 8


class QueryCommand(IntEnum):
    """Commands accepted by a runtime query."""

    IN_OUT_NUM = 0
    INPUT_ATTR = 1
    OUTPUT_ATTR = 2
    PERF_DETAIL = 3
    PERF_RUN = 4
    SDK_VERSION = 5
    MEM_SIZE = 6
    CUSTOM_STRING = 7
    NATIVE_INPUT_ATTR = 8
    NATIVE_OUTPUT_ATTR = 9
    NATIVE_NC1HWC2_INPUT_ATTR = 8
    NATIVE_NC1HWC2_OUTPUT_ATTR = 9
    NATIVE_NHWC_INPUT_ATTR = 10
    NATIVE_NHWC_OUTPUT_ATTR = 11
    DEVICE_MEM_INFO = 12
    INPUT_DYNAMIC_RANGE = 13
    CURRENT_INPUT_ATTR = 14
    CURRENT_OUTPUT_ATTR = 15
    CURRENT_NATIVE_INPUT_ATTR = 16
    CURRENT_NATIVE_OUTPUT_ATTR = 17


class InitFlag(IntFlag):
    """Extended flags for creating a context."""

    PRIOR_HIGH = 0x0
    PRIOR_MEDIUM = 0x1
    PRIOR_LOW = 0x2
    ASYNC_MASK = 0x4
    COLLECT_PERF_MASK = 0x8
    MEM_ALLOC_OUTSIDE = 0x10
    SHARE_WEIGHT_MEM = 0x20
    FENCE_IN_OUTSIDE = 0x40
    FENCE_OUT_OUTSIDE = 0x80
    COLLECT_MODEL_INFO_ONLY = 0x100
    INTERNAL_ALLOC_OUTSIDE = 0x200
    EXECUTE_FALLBACK_PRIOR_DEVICE_GPU = 0x400


class ErrorCode(IntEnum):
    """Status codes returned by the runtime."""

    SUCCESS = 0
    FAIL = -1
    TIMEOUT = -2
    DEVICE_UNAVAILABLE = -3
    MALLOC_FAIL = -4
    PARAM_INVALID = -5
    MODEL_INVALID = -6
    CTX_INVALID = -7
    INPUT_INVALID = -8
    OUTPUT_INVALID = -9
    DEVICE_UNMATCH = -10
    INCOMPATIBLE_PRE_COMPILE_MODEL = -11
    INCOMPATIBLE_OPTIMIZATION_LEVEL_VERSION = -12
    TARGET_PLATFORM_UNMATCH = -13


_ERROR_MESSAGES = {
    ErrorCode.FAIL: "execute failed",
    ErrorCode.TIMEOUT: "execute timeout",
    ErrorCode.DEVICE_UNAVAILABLE: "device is unavailable",
    ErrorCode.MALLOC_FAIL: "memory malloc fail",
    ErrorCode.PARAM_INVALID: "parameter is invalid",
    ErrorCode.MODEL_INVALID: "model is invalid",
    ErrorCode.CTX_INVALID: "context is invalid",
    ErrorCode.INPUT_INVALID: "input is invalid",
    ErrorCode.OUTPUT_INVALID: "output is invalid",
    ErrorCode.DEVICE_UNMATCH: "the device is unmatch, please update sdk and npu driver/firmware",
    ErrorCode.INCOMPATIBLE_PRE_COMPILE_MODEL: (
        "model uses pre_compile mode, but is not compatible with current driver"
    ),
    ErrorCode.INCOMPATIBLE_OPTIMIZATION_LEVEL_VERSION: (
        "model sets optimization level, but is not compatible with current driver"
    ),
    ErrorCode.TARGET_PLATFORM_UNMATCH: (
        "model sets target platform, but is not compatible with current platform"
    ),
}


class RuntimeError_(RuntimeError):
    """Raised when the runtime reports a negative status code."""

    def __init__(self, code: int, context: str = "") -> None:
        self.code = int(code)
        try:
            self.error: ErrorCode | None = ErrorCode(self.code)
        except ValueError:
            self.error = None
        reason = _ERROR_MESSAGES.get(self.error, "unknown error") if self.error else "unknown error"
        message = f"{reason} (ret={self.code})"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


_TYPE_NAMES = {
    TensorType.FLOAT32: "FP32",
    TensorType.FLOAT16: "FP16",
    TensorType.INT8: "INT8",
    TensorType.UINT8: "UINT8",
    TensorType.INT16: "INT16",
    TensorType.UINT16: "UINT16",
    TensorType.INT32: "INT32",
    TensorType.UINT32: "UINT32",
    TensorType.INT64: "INT64",
    TensorType.BOOL: "BOOL",
}

_QNT_NAMES = {
    QuantType.NONE: "NONE",
    QuantType.DFP: "DFP",
    QuantType.AFFINE_ASYMMETRIC: "AFFINE",
}

_FORMAT_NAMES = {
    TensorFormat.NCHW: "NCHW",
    TensorFormat.NHWC: "NHWC",
    TensorFormat.NC1HWC2: "NC1HWC2",
    TensorFormat.UNDEFINED: "UNDEFINED",
}


def _lookup(table: dict, enum_cls: type[IntEnum], value: int) -> str:
    try:
        return table[enum_cls(value)]
    except (ValueError, KeyError):
        return _UNKNOWN


def type_string(tensor_type: int) -> str:
    """Return the short name of a tensor element type."""
    return _lookup(_TYPE_NAMES, TensorType, tensor_type)


def qnt_type_string(qnt_type: int) -> str:
    """Return the short name of a quantisation scheme."""
    return _lookup(_QNT_NAMES, QuantType, qnt_type)


def format_string(fmt: int) -> str:
    """Return the name of a tensor layout."""
    return _lookup(_FORMAT_NAMES, TensorFormat, fmt)


def check_status(code: int) -> int:
    """Return ``code`` unchanged, or raise :class:`RuntimeError_` if it is negative."""
    if code < 0:
        raise RuntimeError_(code)
    return code