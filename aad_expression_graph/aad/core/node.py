# aad/core/node.py
"""
Computation nodes.

A node is one entry on a graph's stack. The graph drives every node through
the same lifecycle:

    allocate(batch_size) -> forward() -> set_zero_adjoint() -> [init_dependent()] -> backward()

Variants form a closed set: InputNode, ParamNode, ConstantNode (leaves) and
OperatorNode (everything computed from other nodes, distinguished by op_tag).
A node's children are always nodes that were pushed before it, so stack
order is a topological order.
"""
from __future__ import annotations

from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .errors import UninitializedAccessError

Shape = Tuple[Optional[int], ...]


def normalize_shape(shape: Any) -> Shape:
    """Turn an int / sequence into a shape tuple; None entries mark the batch extent."""
    if shape is None:
        return ()
    if isinstance(shape, (int, np.integer)):
        shape = (shape,)
    out = []
    for dim in shape:
        if dim is None:
            out.append(None)
        elif isinstance(dim, (int, np.integer)) and dim >= 0:
            out.append(int(dim))
        else:
            raise ValueError(f"Invalid dimension {dim!r} in shape {shape!r}")
    return tuple(out)


def resolve_shape(shape: Shape, batch_size: int) -> Tuple[int, ...]:
    return tuple(batch_size if dim is None else dim for dim in shape)


def shape_matches(declared: Shape, actual: Tuple[int, ...]) -> bool:
    if len(declared) != len(actual):
        return False
    return all(d is None or d == a for d, a in zip(declared, actual))


def as_tensor(data: Any, dtype) -> np.ndarray:
    # Same admission rule as a numeric leaf: scalars, sequences, ndarrays
    if isinstance(data, (bool, np.bool_)) or not isinstance(
        data, (int, float, np.integer, np.floating, list, tuple, np.ndarray)
    ):
        raise TypeError(
            f"Node values must be numeric (int, float, list, tuple, ndarray), but got {type(data)}"
        )
    return np.array(data, dtype=dtype)


def unbroadcast(grad: np.ndarray, shape: Tuple[int, ...]) -> np.ndarray:
    """Sum `grad` over the axes that broadcasting added or stretched to reach it from `shape`."""
    grad = np.asarray(grad)
    if grad.shape == shape:
        return grad
    if grad.ndim < len(shape):
        return np.broadcast_to(grad, shape)
    extra = grad.ndim - len(shape)
    if extra > 0:
        grad = grad.sum(axis=tuple(range(extra)))
    axes = tuple(i for i, dim in enumerate(shape) if dim == 1 and grad.shape[i] != 1)
    if axes:
        grad = grad.sum(axis=axes, keepdims=True)
    return np.broadcast_to(grad, shape)


class Node:
    """
    Base capability shared by every variant.

    Attributes
    ----------
    children : tuple of Node
        Operands, all earlier on the same stack.
    shape    : tuple
        Declared shape; None entries are replaced by the batch extent at allocation.
    name     : Optional[str]
        Debug label; the graph also registers it as a named node.
    index    : Optional[int]
        Position on the owning graph's stack, set when the node is pushed.
    """
    op_tag = "node"
    fillcolor = "white"

    def __init__(self, shape: Any = None, *, children: Sequence["Node"] = (), name: Optional[str] = None):
        self.children: Tuple[Node, ...] = tuple(children)
        self.shape: Shape = normalize_shape(shape)
        self.name = name
        self.index: Optional[int] = None
        self.graph = None
        self.dtype = np.float64
        self._val: Optional[np.ndarray] = None
        self._adj: Optional[np.ndarray] = None
        self._val_ready = False
        self._adj_ready = False

    def __repr__(self):
        return f"{type(self).__name__}(index={self.index}, shape={self.shape}, name={self.name!r})"

    # ---------------- storage ----------------
    @property
    def allocated_shape(self) -> Optional[Tuple[int, ...]]:
        return None if self._val is None else self._val.shape

    def resolved_shape(self, batch_size: int) -> Tuple[int, ...]:
        return resolve_shape(self.shape, batch_size)

    def allocate(self, batch_size: int) -> None:
        """Size value and adjoint storage for this extent; reuses storage when the shape is unchanged."""
        shape = self.resolved_shape(batch_size)
        if self._val is None or self._val.shape != shape:
            self._val = np.zeros(shape, dtype=self.dtype)
            self._val_ready = False
        if self._adj is None or self._adj.shape != shape:
            self._adj = np.zeros(shape, dtype=self.dtype)
        self._adj_ready = False

    # ---------------- value / adjoint ----------------
    @property
    def val(self) -> np.ndarray:
        if not self._val_ready:
            raise UninitializedAccessError(
                f"Value of {self.label()} read before it was computed", {"index": self.index}
            )
        return self._val

    @property
    def adj(self) -> np.ndarray:
        if not self._adj_ready:
            raise UninitializedAccessError(
                f"Adjoint of {self.label()} read before a backward pass", {"index": self.index}
            )
        return self._adj

    def set_val(self, tensor: Any) -> None:
        raise TypeError(f"{type(self).__name__} does not accept externally supplied values")

    def accumulate(self, grad: np.ndarray) -> None:
        self._adj += unbroadcast(grad, self._adj.shape)

    # ---------------- lifecycle ----------------
    def forward(self) -> None:
        pass

    def backward(self) -> None:
        pass

    def set_zero_adjoint(self) -> None:
        if self._adj is None:
            raise UninitializedAccessError(
                f"{self.label()} has no adjoint storage; run forward() first", {"index": self.index}
            )
        self._adj.fill(0.0)
        self._adj_ready = True

    def init_dependent(self) -> None:
        self._adj.fill(1.0)

    # ---------------- diagnostics ----------------
    def label(self) -> str:
        text = self.op_tag if self.name is None else f"{self.op_tag} {self.name}"
        return f"{text} {list(self.shape)}"

    def graphviz(self) -> str:
        """DOT fragment for this node and the edges from its children."""
        lines = [
            f'"n{self.index}" [shape="box", label="{self.label()}", style="filled", fillcolor="{self.fillcolor}"]'
        ]
        lines.extend(f'"n{child.index}" -> "n{self.index}"' for child in self.children)
        return "\n".join(lines) + "\n\n"


class InputNode(Node):
    """Data fed from outside before each forward pass; forward() only checks it was fed."""
    op_tag = "input"
    fillcolor = "lawngreen"

    def __init__(self, shape: Any, *, name: Optional[str] = None):
        super().__init__(shape, name=name)

    def set_val(self, tensor: Any) -> None:
        arr = as_tensor(tensor, self.dtype)
        if not shape_matches(self.shape, arr.shape):
            raise ValueError(
                f"Value of shape {arr.shape} does not fit input {self.label()}"
            )
        self._val = arr
        self._val_ready = True

    def allocate(self, batch_size: int) -> None:
        shape = self.resolved_shape(batch_size)
        if self._val_ready and self._val.shape != shape:
            raise ValueError(
                f"Input {self.label()} was fed shape {self._val.shape}, "
                f"but the batch extent {batch_size} requires {shape}"
            )
        if self._val is None or self._val.shape != shape:
            self._val = np.zeros(shape, dtype=self.dtype)
        if self._adj is None or self._adj.shape != shape:
            self._adj = np.zeros(shape, dtype=self.dtype)
        self._adj_ready = False

    def forward(self) -> None:
        if not self._val_ready:
            raise UninitializedAccessError(f"Input {self.label()} has not been fed", {"index": self.index})


class ParamNode(Node):
    """Trainable value held across passes; initialised from `value`, `init(shape)` or zeros."""
    op_tag = "param"
    fillcolor = "orangered"

    def __init__(self, shape: Any = None, *, value: Any = None,
                 init: Optional[Callable[[Tuple[int, ...]], Any]] = None, name: Optional[str] = None):
        if value is not None and shape is None:
            shape = np.shape(value)
        super().__init__(shape, name=name)
        if None in self.shape:
            raise ValueError(f"Parameter shapes cannot depend on the batch extent: {self.shape}")
        self._initial = value
        self._init = init

    def materialize(self) -> None:
        """Create the initial value once the dtype is known (called when pushed on a graph)."""
        if self._initial is not None:
            self.set_val(self._initial)
        elif self._init is not None:
            self.set_val(self._init(self.shape))
        else:
            self.set_val(np.zeros(self.shape))
        self._initial = self._init = None

    def set_val(self, tensor: Any) -> None:
        arr = as_tensor(tensor, self.dtype)
        if arr.shape != self.shape:
            raise ValueError(f"Value of shape {arr.shape} does not fit parameter {self.label()}")
        self._val = arr
        self._val_ready = True

    def allocate(self, batch_size: int) -> None:
        if self._adj is None:
            self._adj = np.zeros(self.shape, dtype=self.dtype)
        self._adj_ready = False


class ConstantNode(Node):
    """Fixed value, filled at allocation; a scalar value is broadcast over the resolved shape."""
    op_tag = "constant"

    def __init__(self, shape: Any = None, *, value: Any = 0.0, name: Optional[str] = None):
        if shape is None:
            shape = np.shape(value)
        super().__init__(shape, name=name)
        self.value = as_tensor(value, np.float64)

    def allocate(self, batch_size: int) -> None:
        super().allocate(batch_size)
        try:
            self._val[...] = self.value
        except ValueError:
            raise ValueError(
                f"Constant value of shape {self.value.shape} does not fit {self._val.shape}"
            ) from None
        self._val_ready = True

    def label(self) -> str:
        if self.value.ndim == 0:
            return f"{self.op_tag} {float(self.value):g} {list(self.shape)}"
        return super().label()


class OperatorNode(Node):
    """
    A node computed from its children.

    Subclasses provide:
      infer_shape(*child_shapes) -> output shape   (default: NumPy broadcasting)
      compute(*child_vals)       -> output value
      local_grads(adj, *child_vals) -> one contribution per child (None to skip),
          either in the output shape (reduced over broadcast axes here) or in the child's shape.
    """
    op_tag = "op"

    def __init__(self, *children: Node, name: Optional[str] = None):
        super().__init__(None, children=children, name=name)
        # Known once allocated
        self.shape = None

    def infer_shape(self, *shapes: Tuple[int, ...]) -> Tuple[int, ...]:
        try:
            return tuple(np.broadcast_shapes(*shapes))
        except ValueError:
            raise ValueError(f"{self.op_tag}: incompatible operand shapes {shapes}") from None

    def compute(self, *vals: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def local_grads(self, adj: np.ndarray, *vals: np.ndarray) -> List[Optional[np.ndarray]]:
        raise NotImplementedError

    def resolved_shape(self, batch_size: int) -> Tuple[int, ...]:
        # Children are allocated first (stack order), so their shapes are known
        return self.infer_shape(*[child.allocated_shape for child in self.children])

    def allocate(self, batch_size: int) -> None:
        super().allocate(batch_size)
        self.shape = self._val.shape
        self._val_ready = False

    def forward(self) -> None:
        self._val[...] = self.compute(*[child.val for child in self.children])
        self._val_ready = True

    def backward(self) -> None:
        vals = [child.val for child in self.children]
        for child, grad in zip(self.children, self.local_grads(self._adj, *vals)):
            if grad is not None:
                child.accumulate(grad)

    def label(self) -> str:
        return self.op_tag if self.name is None else f"{self.op_tag} {self.name}"
