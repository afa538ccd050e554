"""Descriptions of model tensors, inputs and outputs."""

from __future__ import annotations

from dataclasses import dataclass, field

from .tensor import (
    MAX_DIMS,
    MAX_NAME_LEN,
    QuantType,
    TensorFormat,
    TensorType,
    format_string,
    qnt_type_string,
    type_string,
)


@dataclass
class TensorAttr:
    """Attributes of one input or output tensor of a model."""

    index: int = 0
    dims: tuple[int, ...] = ()
    name: str = ""
    n_elems: int = 0
    size: int = 0
    fmt: TensorFormat = TensorFormat.NCHW
    type: TensorType = TensorType.FLOAT32
    qnt_type: QuantType = QuantType.NONE
    fl: int = 0
    zp: int = 0
    scale: float = 0.0
    w_stride: int = 0
    size_with_stride: int = 0
    pass_through: bool = False
    h_stride: int = 0

    def __post_init__(self) -> None:
        self.dims = tuple(int(d) for d in self.dims)
        if len(self.dims) > MAX_DIMS:
            raise ValueError(f"a tensor has at most {MAX_DIMS} dimensions, got {len(self.dims)}")
        if len(self.name.encode()) >= MAX_NAME_LEN:
            raise ValueError(f"tensor name must be shorter than {MAX_NAME_LEN} bytes")
        self.fmt = TensorFormat(self.fmt)
        self.type = TensorType(self.type)
        self.qnt_type = QuantType(self.qnt_type)

    @property
    def n_dims(self) -> int:
        return len(self.dims)

    def shape_string(self) -> str:
        """Return the dimensions joined by ``", "``."""
        return ", ".join(str(d) for d in self.dims)

    def describe(self) -> str:
        """Return a one-line human readable summary of the attributes."""
        return (
            f"index={self.index}, name={self.name}, n_dims={self.n_dims}, "
            f"dims=[{self.shape_string()}], n_elems={self.n_elems}, size={self.size}, "
            f"fmt={format_string(self.fmt)}, type={type_string(self.type)}, "
            f"qnt_type={qnt_type_string(self.qnt_type)}, zp={self.zp}, scale={self.scale:f}"
        )

    def is_quantized_int(self) -> bool:
        """True for 8-bit tensors with affine or dynamic fixed point quantisation."""
        return self.qnt_type in (QuantType.AFFINE_ASYMMETRIC, QuantType.DFP) and self.type in (
            TensorType.INT8,
            TensorType.UINT8,
        )


@dataclass(frozen=True)
class InputOutputNum:
    """Number of input and output tensors of a model."""

    n_input: int
    n_output: int

    def __post_init__(self) -> None:
        if self.n_input < 0 or self.n_output < 0:
            raise ValueError("tensor counts must not be negative")


@dataclass(frozen=True)
class SdkVersion:
    """Versions of the runtime API and the driver."""

    api_version: str
    drv_version: str

    def __str__(self) -> str:
        return f"sdk version: {self.api_version} driver version: {self.drv_version}"


@dataclass
class InputSpec:
    """Data handed to one model input."""

    index: int
    buf: bytes
    type: TensorType = TensorType.UINT8
    fmt: TensorFormat = TensorFormat.NHWC
    pass_through: bool = False

    def __post_init__(self) -> None:
        self.buf = bytes(self.buf)
        self.type = TensorType(self.type)
        self.fmt = TensorFormat(self.fmt)

    @property
    def size(self) -> int:
        return len(self.buf)


@dataclass
class OutputSpec:
    """Request for, and after a run the data of, one model output."""

    index: int
    want_float: bool = False
    is_prealloc: bool = False
    buf: bytes | None = field(default=None)

    @property
    def size(self) -> int:
        return 0 if self.buf is None else len(self.buf)