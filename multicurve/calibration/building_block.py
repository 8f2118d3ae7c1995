"""Index tables and sensitivity matrices linking curve parameters to quotes.

A :class:`CurveBuildingBlock` assigns every market quote a curve depends on
to a column: quote ``k`` of curve ``C`` sits in column ``start(C) + k``. A
:class:`CurveBuildingBlockBundle` pairs each calibrated curve with its block
and the ``d parameters / d quotes`` matrix laid out on those columns.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd

from multicurve.errors import ConfigurationError


class CurveBuildingBlock:
    """Immutable ordered map ``curve name -> (start column, number of quotes)``."""

    def __init__(self, layout: Optional[Iterable[Tuple[str, int]]] = None):
        self._layout: Dict[str, Tuple[int, int]] = {}
        total = 0
        for name, count in layout or ():
            if name in self._layout:
                raise ConfigurationError(f"Curve {name!r} appears twice in a building block")
            if count < 0:
                raise ConfigurationError(f"Curve {name!r}: negative quote count {count}")
            self._layout[name] = (total, count)
            total += count
        self._total = total

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def add(self, name: str, count: int) -> "CurveBuildingBlock":
        """New block with ``name`` appended after the existing columns."""
        return CurveBuildingBlock(self.layout() + [(name, count)])

    def merge(self, other: "CurveBuildingBlock") -> "CurveBuildingBlock":
        """New block with ``other``'s curves appended where not already present."""
        layout = self.layout()
        for name, count in other.layout():
            if name in self._layout:
                if self.nb_parameters(name) != count:
                    raise ConfigurationError(
                        f"Curve {name!r} has {self.nb_parameters(name)} quotes in one "
                        f"building block and {count} in another"
                    )
                continue
            layout.append((name, count))
        return CurveBuildingBlock(layout)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def layout(self) -> List[Tuple[str, int]]:
        return [(name, count) for name, (_, count) in self._layout.items()]

    def start(self, name: str) -> int:
        return self._entry(name)[0]

    def nb_parameters(self, name: str) -> int:
        return self._entry(name)[1]

    def columns(self, name: str) -> slice:
        start, count = self._entry(name)
        return slice(start, start + count)

    def index(self, name: str, quote_index: int) -> int:
        """Column of quote ``quote_index`` of curve ``name``."""
        start, count = self._entry(name)
        if not 0 <= quote_index < count:
            raise IndexError(f"Curve {name!r} has {count} quotes, no index {quote_index}")
        return start + quote_index

    @property
    def total(self) -> int:
        return self._total

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._layout)

    def labels(self) -> List[Tuple[str, int]]:
        """``(curve, quote index)`` label of every column."""
        return [(name, k) for name, count in self.layout() for k in range(count)]

    def __contains__(self, name: object) -> bool:
        return name in self._layout

    def __iter__(self) -> Iterator[str]:
        return iter(self._layout)

    def __len__(self) -> int:
        return len(self._layout)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurveBuildingBlock):
            return NotImplemented
        return self.layout() == other.layout()

    def __hash__(self) -> int:
        return hash(tuple(self.layout()))

    def __repr__(self) -> str:
        return f"CurveBuildingBlock({self.layout()})"

    def _entry(self, name: str) -> Tuple[int, int]:
        if name not in self._layout:
            raise KeyError(f"Curve {name!r} not in building block {list(self._layout)}")
        return self._layout[name]


class CurveBuildingBlockBundle:
    """Ordered map ``curve name -> (CurveBuildingBlock, sensitivity matrix)``.

    Matrices are stored read-only; entries cannot be replaced once added.
    """

    def __init__(self):
        self._data: Dict[str, Tuple[CurveBuildingBlock, np.ndarray]] = {}

    def add(self, name: str, block: CurveBuildingBlock, matrix: np.ndarray) -> None:
        if name in self._data:
            raise ConfigurationError(f"Curve {name!r} already has a building block entry")
        matrix = np.array(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[1] != block.total:
            raise ConfigurationError(
                f"Curve {name!r}: matrix shape {matrix.shape} does not match "
                f"{block.total} building block columns"
            )
        matrix.setflags(write=False)
        self._data[name] = (block, matrix)

    def copy(self) -> "CurveBuildingBlockBundle":
        bundle = CurveBuildingBlockBundle()
        bundle._data = dict(self._data)
        return bundle

    def get_block(self, name: str) -> Tuple[CurveBuildingBlock, np.ndarray]:
        if name not in self._data:
            raise KeyError(f"No building block entry for curve {name!r}")
        return self._data[name]

    def building_block(self, name: str) -> CurveBuildingBlock:
        return self.get_block(name)[0]

    def matrix(self, name: str) -> np.ndarray:
        return self.get_block(name)[1]

    def sensitivity(self, name: str, to_curve: str) -> Optional[np.ndarray]:
        """Columns of ``name``'s matrix belonging to ``to_curve``'s quotes.

        ``None`` means ``to_curve`` is not in the building block at all, as
        opposed to an all-zero block.
        """
        block, matrix = self.get_block(name)
        if to_curve not in block:
            return None
        return matrix[:, block.columns(to_curve)]

    def to_frame(self, name: str) -> pd.DataFrame:
        """Sensitivity matrix of one curve with labelled rows and columns."""
        block, matrix = self.get_block(name)
        columns = pd.MultiIndex.from_tuples(block.labels(), names=["curve", "quote"])
        index = pd.Index(range(matrix.shape[0]), name="parameter")
        return pd.DataFrame(matrix, index=index, columns=columns)

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._data)

    def items(self):
        return self._data.items()

    def __contains__(self, name: object) -> bool:
        return name in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"CurveBuildingBlockBundle({list(self._data)})"
