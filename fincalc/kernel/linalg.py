"""
Linear Algebra

Dense vector and matrix helpers over lists of Decimal, sized for the small
(tens of assets) systems in portfolio construction.

Every combining operation checks that its operands are conformable before
doing any arithmetic. Symmetry of covariance matrices is left to callers.
"""

import logging
from decimal import Decimal
from typing import List, Sequence, Tuple

from fincalc.kernel.context import ONE, ZERO, kernel_context, to_decimal
from fincalc.kernel.errors import (
    DimensionMismatchError,
    DivisionByZeroError,
    SingularMatrixError,
)
from fincalc.kernel.transcendental import decimal_sqrt

logger = logging.getLogger(__name__)

Vector = List[Decimal]
Matrix = List[List[Decimal]]

PIVOT_THRESHOLD = Decimal("0.0000000001")


def _shape(matrix: Sequence[Sequence], name: str = "matrix") -> Tuple[int, int]:
    rows = len(matrix)
    if rows == 0:
        return 0, 0
    cols = len(matrix[0])
    for i, row in enumerate(matrix):
        if len(row) != cols:
            raise DimensionMismatchError(
                f"{name} row {i} has {len(row)} columns, expected {cols}"
            )
    return rows, cols


def _as_vector(values: Sequence) -> Vector:
    return [to_decimal(v) for v in values]


def _as_matrix(rows: Sequence[Sequence]) -> Matrix:
    return [[to_decimal(v) for v in row] for row in rows]


@kernel_context
def identity(n: int) -> Matrix:
    """n x n identity matrix."""
    return [[ONE if i == j else ZERO for j in range(n)] for i in range(n)]


@kernel_context
def dot(a: Sequence, b: Sequence) -> Decimal:
    """Inner product of two equal-length vectors."""
    if len(a) != len(b):
        raise DimensionMismatchError(f"dot: lengths {len(a)} and {len(b)} differ")
    total = ZERO
    for x, y in zip(_as_vector(a), _as_vector(b)):
        total += x * y
    return total


@kernel_context
def mat_vec_mul(matrix: Sequence[Sequence], vector: Sequence) -> Vector:
    """A * v"""
    rows, cols = _shape(matrix)
    if cols != len(vector):
        raise DimensionMismatchError(
            f"mat_vec_mul: {rows}x{cols} matrix times length-{len(vector)} vector"
        )
    v = _as_vector(vector)
    return [dot(row, v) for row in matrix]


@kernel_context
def mat_mul(a: Sequence[Sequence], b: Sequence[Sequence]) -> Matrix:
    """A * B"""
    a_rows, a_cols = _shape(a, "left")
    b_rows, b_cols = _shape(b, "right")
    if a_cols != b_rows:
        raise DimensionMismatchError(
            f"mat_mul: {a_rows}x{a_cols} times {b_rows}x{b_cols}"
        )
    left = _as_matrix(a)
    right = _as_matrix(b)
    result = []
    for i in range(a_rows):
        row = []
        for j in range(b_cols):
            total = ZERO
            for k in range(a_cols):
                total += left[i][k] * right[k][j]
            row.append(total)
        result.append(row)
    return result


@kernel_context
def mat_mul_transpose(a: Sequence[Sequence], b: Sequence[Sequence]) -> Matrix:
    """A * B^T without materializing the transpose."""
    a_rows, a_cols = _shape(a, "left")
    b_rows, b_cols = _shape(b, "right")
    if a_cols != b_cols:
        raise DimensionMismatchError(
            f"mat_mul_transpose: {a_rows}x{a_cols} times ({b_rows}x{b_cols})^T"
        )
    return [[dot(row_a, row_b) for row_b in b] for row_a in a]


@kernel_context
def transpose(matrix: Sequence[Sequence]) -> Matrix:
    rows, cols = _shape(matrix)
    m = _as_matrix(matrix)
    return [[m[i][j] for i in range(rows)] for j in range(cols)]


@kernel_context
def mat_add(a: Sequence[Sequence], b: Sequence[Sequence]) -> Matrix:
    """Element-wise A + B."""
    if _shape(a, "left") != _shape(b, "right"):
        raise DimensionMismatchError(
            f"mat_add: shapes {_shape(a)} and {_shape(b)} differ"
        )
    return [
        [x + y for x, y in zip(_as_vector(row_a), _as_vector(row_b))]
        for row_a, row_b in zip(a, b)
    ]


@kernel_context
def mat_scale(matrix: Sequence[Sequence], scalar) -> Matrix:
    """Multiply every element by a scalar."""
    _shape(matrix)
    s = to_decimal(scalar)
    return [[x * s for x in row] for row in _as_matrix(matrix)]


@kernel_context
def inverse(matrix: Sequence[Sequence]) -> Matrix:
    """
    Invert a square matrix by Gauss-Jordan elimination with partial pivoting.

    The matrix is augmented with the identity. For each column the row with
    the largest absolute value at or below the diagonal becomes the pivot,
    the pivot row is normalized, and the column is eliminated from every
    other row. The right half of the augmented matrix is then the inverse.

    Args:
        matrix: Square matrix

    Returns:
        Inverse matrix ([] for an empty input)

    Raises:
        DimensionMismatchError: If the matrix is not square
        SingularMatrixError: If a pivot magnitude falls below 1e-10
    """
    rows, cols = _shape(matrix)
    if rows != cols:
        raise DimensionMismatchError(f"inverse: matrix is {rows}x{cols}, not square")
    n = rows
    if n == 0:
        return []

    augmented = [
        row + [ONE if i == j else ZERO for j in range(n)]
        for i, row in enumerate(_as_matrix(matrix))
    ]

    for col in range(n):
        pivot_row = max(range(col, n), key=lambda r: abs(augmented[r][col]))
        pivot = augmented[pivot_row][col]
        if abs(pivot) < PIVOT_THRESHOLD:
            logger.debug(f"Singular matrix: pivot {pivot} in column {col} of {n}x{n}")
            raise SingularMatrixError(
                f"Matrix is singular (pivot {pivot} in column {col})"
            )
        if pivot_row != col:
            augmented[col], augmented[pivot_row] = augmented[pivot_row], augmented[col]

        augmented[col] = [x / pivot for x in augmented[col]]

        for r in range(n):
            if r == col:
                continue
            factor = augmented[r][col]
            if factor == ZERO:
                continue
            augmented[r] = [
                x - factor * p for x, p in zip(augmented[r], augmented[col])
            ]

    return [row[n:] for row in augmented]


@kernel_context
def inverse_diagonal(matrix: Sequence[Sequence]) -> Matrix:
    """
    Invert a diagonal matrix in O(n) by reciprocating its diagonal.

    Off-diagonal entries are ignored.

    Raises:
        DimensionMismatchError: If the matrix is not square
        DivisionByZeroError: If a diagonal element is exactly zero
    """
    rows, cols = _shape(matrix)
    if rows != cols:
        raise DimensionMismatchError(
            f"inverse_diagonal: matrix is {rows}x{cols}, not square"
        )
    result = identity(rows)
    for i in range(rows):
        d = to_decimal(matrix[i][i])
        if d == ZERO:
            logger.debug(f"Zero diagonal element at index {i}")
            raise DivisionByZeroError(f"Diagonal element {i} is zero")
        result[i][i] = ONE / d
    return result


@kernel_context
def quadratic_form(weights: Sequence, covariance: Sequence[Sequence]) -> Decimal:
    """w^T * Sigma * w, i.e. portfolio variance."""
    return dot(weights, mat_vec_mul(covariance, weights))


@kernel_context
def portfolio_std(weights: Sequence, covariance: Sequence[Sequence]) -> Decimal:
    """sqrt(w^T * Sigma * w). Tiny negative variances from rounding read as 0."""
    variance = quadratic_form(weights, covariance)
    if variance <= ZERO:
        return ZERO
    return decimal_sqrt(variance)
