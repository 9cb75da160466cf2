"""
Bijection between binary vectors and non-negative integer codes.

A binary vector (b_0, ..., b_{L-1}) maps to the integer
    code = sum_l b_l * 2^(L - 1 - l)
i.e. the first element is the most significant bit. The same convention
is used for single attribute profiles (L = K, where the code is the
latent class index) and for whole trajectories (L = K * T, where the
profile at time t occupies positions t*K .. (t+1)*K - 1).

Because the first element is the most significant, the code of a
trajectory equals sum_t class(t) * 2^(K * (T - 1 - t)).
"""

from collections.abc import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from learning_analysis.core.exceptions import ContractError

# Trajectory codes arrive as float64 draws, exact only up to 2^53
MAX_CODE_BITS = 53


def bijection_vector(length: int) -> NDArray[np.int64]:
    """
    Positional weights (2^(L-1), ..., 2, 1) for a code of the given length.

    Args:
        length: Number of bits L.

    Returns:
        Integer array of shape (L,).
    """
    if length < 0 or length > MAX_CODE_BITS:
        raise ContractError(
            f"Code length must be in [0, {MAX_CODE_BITS}], got {length}"
        )
    result: NDArray[np.int64] = 2 ** np.arange(
        length - 1, -1, -1, dtype=np.int64
    )
    return result


def encode(bits: Sequence[int] | NDArray[np.integer]) -> int:
    """
    Encode a binary vector as an integer code.

    Args:
        bits: Sequence of 0/1 values, most significant first.

    Returns:
        Integer in [0, 2^L).

    Raises:
        ContractError: If any element is not 0 or 1.
    """
    code = 0
    for bit in np.asarray(bits).ravel().tolist():
        if bit not in (0, 1):
            raise ContractError(f"Bits must be 0 or 1, got {bit!r}")
        code = 2 * code + int(bit)
    return code


def decode(code: int | float, length: int) -> NDArray[np.int8]:
    """
    Decode an integer code into a binary vector of the given length.

    Args:
        code: Integer code in [0, 2^length). Integral floats are accepted
            since samplers often store codes as doubles.
        length: Number of bits L.

    Returns:
        Array of shape (L,) with 0/1 entries, most significant first.

    Raises:
        ContractError: If the code is negative, non-integral or too large.
    """
    value = _as_code(code, length)
    bits = np.zeros(length, dtype=np.int8)
    for position in range(length - 1, -1, -1):
        bits[position] = value & 1
        value >>= 1
    return bits


def decode_many(codes: ArrayLike, length: int) -> NDArray[np.int8]:
    """
    Vectorized decode of many codes.

    Args:
        codes: Array of codes, any shape S.
        length: Number of bits L (at most MAX_CODE_BITS).

    Returns:
        Array of shape S + (L,) with 0/1 entries.
    """
    codes_arr = np.asarray(codes)
    check_codes(codes_arr, length)
    int_codes = codes_arr.astype(np.int64)
    shifts = np.arange(length - 1, -1, -1, dtype=np.int64)
    bits: NDArray[np.int8] = (
        (int_codes[..., np.newaxis] >> shifts) & 1
    ).astype(np.int8)
    return bits


def class_index(profiles: ArrayLike) -> NDArray[np.int64]:
    """
    Latent class index of each attribute profile.

    Args:
        profiles: 0/1 array of shape S + (K,).

    Returns:
        Integer array of shape S with values in [0, 2^K).
    """
    profiles_arr = np.asarray(profiles)
    weights = bijection_vector(profiles_arr.shape[-1])
    result: NDArray[np.int64] = profiles_arr.astype(np.int64) @ weights
    return result


def check_codes(codes: NDArray[np.generic], length: int) -> None:
    """
    Check that every code is a finite integer in [0, 2^length).

    Raises:
        ContractError: For the first violated condition.
    """
    if length < 0 or length > MAX_CODE_BITS:
        raise ContractError(
            f"Code length must be in [0, {MAX_CODE_BITS}], got {length}"
        )
    if codes.size == 0:
        return
    if not np.all(np.isfinite(codes)):
        raise ContractError("Codes must be finite")
    if not np.all(np.mod(codes, 1) == 0):
        raise ContractError("Codes must be integral")
    if codes.min() < 0 or codes.max() >= 2**length:
        raise ContractError(
            f"Codes must be in [0, 2^{length}), got range "
            f"[{codes.min()}, {codes.max()}]"
        )


def _as_code(code: int | float, length: int) -> int:
    if length < 0:
        raise ContractError(f"Code length must be >= 0, got {length}")
    if isinstance(code, float | np.floating):
        if not np.isfinite(code) or code != int(code):
            raise ContractError(f"Code must be integral, got {code!r}")
    value = int(code)
    if value < 0 or value >= 2**length:
        raise ContractError(
            f"Code must be in [0, 2^{length}), got {value}"
        )
    return value


def decode_trajectories(
    codes: ArrayLike, n_skills: int, n_times: int
) -> NDArray[np.int8]:
    """
    Decode one trajectory code per subject into attribute profiles.

    Args:
        codes: Trajectory codes, shape (N,).
        n_skills: Number of skills K.
        n_times: Number of time points T.

    Returns:
        Array of shape (N, K, T); entry (i, k, t) is bit t * K + k.
    """
    bits = decode_many(codes, n_skills * n_times)
    n_subjects = bits.shape[0]
    result: NDArray[np.int8] = bits.reshape(
        n_subjects, n_times, n_skills
    ).transpose(0, 2, 1)
    return result
