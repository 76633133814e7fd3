from typing import Iterable, List, Sequence, Tuple, Union
import numpy as np

VectorLike = Union[Sequence[float], np.ndarray]

# Stored vectors are little-endian float32, 4 bytes per component.
F32_LE = np.dtype("<f4")

def f32_vec_to_bytes(vec: VectorLike) -> bytes:
    return np.asarray(vec, dtype=F32_LE).tobytes()

def bytes_to_f32_vec(data: bytes) -> np.ndarray:
    """Decode stored bytes; a trailing partial component is ignored."""
    usable = len(data) - (len(data) % F32_LE.itemsize)
    return np.frombuffer(data[:usable], dtype=F32_LE).astype(np.float32)

def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0.0:
        return 0.0
    return float(np.dot(a, b) / denom)

def rank(query_vec: VectorLike, candidates: Iterable[Tuple[str, VectorLike]], k: int) -> List[Tuple[str, float]]:
    """Exact top-k by cosine similarity over a full linear scan.

    Ties keep candidate iteration order (stable sort).
    """
    if k <= 0:
        return []
    ids, scores = [], []
    for asset_id, vec in candidates:
        ids.append(asset_id)
        scores.append(cosine_similarity(query_vec, vec))
    if not ids:
        return []
    sims = np.asarray(scores, dtype=np.float64)
    idxs = np.argsort(-sims, kind="stable")[:k]
    return [(ids[i], float(sims[i])) for i in idxs]
