"""Reading and writing point clouds in the PCD file format."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

POINT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("x", "f4"), ("y", "f4"), ("z", "f4"), ("intensity", "f4"),
)
POSE_FIELDS: Tuple[Tuple[str, str], ...] = POINT_FIELDS + (
    ("roll", "f4"), ("pitch", "f4"), ("yaw", "f4"), ("time", "f8"),
)

_TYPE_CODES = {"f": "F", "u": "U", "i": "I"}
_KINDS = {"F": "f", "U": "u", "I": "i"}


def _normalise(fields: Sequence[Tuple[str, str]]) -> List[Tuple[str, np.dtype]]:
    result = []
    for name, kind in fields:
        dtype = np.dtype(kind)
        if dtype.kind not in _TYPE_CODES:
            raise ValueError(f"unsupported field type for {name}: {kind}")
        result.append((str(name), dtype.newbyteorder("<")))
    if not result:
        raise ValueError("at least one field is needed")
    return result


def _formatter(dtype: np.dtype) -> Callable[[object], str]:
    if dtype.kind == "f":
        if dtype.itemsize == 4:
            return lambda v: format(float(v), ".9g")
        return lambda v: repr(float(v))
    return lambda v: str(int(v))


def write_pcd(path, cloud, fields: Optional[Sequence[Tuple[str, str]]] = None,
              binary: bool = True) -> None:
    """Write a cloud whose columns match ``fields`` (x, y, z, intensity by default)."""
    spec = _normalise(POINT_FIELDS if fields is None else fields)
    data = np.asarray(cloud, dtype=np.float64)
    if data.size == 0:
        data = data.reshape(0, len(spec))
    if data.ndim != 2 or data.shape[1] != len(spec):
        raise ValueError(f"cloud must have {len(spec)} columns")

    dtype = np.dtype(spec)
    records = np.empty(len(data), dtype=dtype)
    for column, (name, _) in enumerate(spec):
        records[name] = data[:, column]

    count = len(records)
    header = "\n".join([
        "# .PCD v0.7 - Point Cloud Data file format",
        "VERSION 0.7",
        "FIELDS " + " ".join(name for name, _ in spec),
        "SIZE " + " ".join(str(t.itemsize) for _, t in spec),
        "TYPE " + " ".join(_TYPE_CODES[t.kind] for _, t in spec),
        "COUNT " + " ".join("1" for _ in spec),
        f"WIDTH {count}",
        "HEIGHT 1",
        "VIEWPOINT 0 0 0 1 0 0 0",
        f"POINTS {count}",
        "DATA " + ("binary" if binary else "ascii"),
    ]) + "\n"

    with open(path, "wb") as fh:
        fh.write(header.encode("ascii"))
        if binary:
            fh.write(records.tobytes())
        else:
            formatters = [_formatter(t) for _, t in spec]
            for record in records:
                line = " ".join(f(v) for f, v in zip(formatters, record))
                fh.write((line + "\n").encode("ascii"))


def read_pcd(path) -> np.ndarray:
    """Read an ascii or binary PCD file into a structured array named by its fields."""
    raw = Path(path).read_bytes()
    header = {}
    pos = 0
    while "DATA" not in header:
        end = raw.find(b"\n", pos)
        if end < 0:
            raise ValueError("PCD header has no DATA line")
        line = raw[pos:end].decode("ascii").strip()
        pos = end + 1
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition(" ")
        header[key.upper()] = value.split()

    try:
        names = header["FIELDS"]
        sizes = [int(s) for s in header["SIZE"]]
        types = header["TYPE"]
    except KeyError as missing:
        raise ValueError(f"PCD header lacks {missing.args[0]}") from None
    counts = [int(c) for c in header.get("COUNT", ["1"] * len(names))]
    if not (len(names) == len(sizes) == len(types) == len(counts)):
        raise ValueError("PCD header field lists differ in length")
    if any(c != 1 for c in counts):
        raise ValueError("fields with COUNT other than 1 are not supported")
    for t in types:
        if t.upper() not in _KINDS:
            raise ValueError(f"unknown PCD field type: {t}")
    dtype = np.dtype([(n, f"<{_KINDS[t.upper()]}{s}") for n, t, s in zip(names, types, sizes)])

    if "POINTS" in header:
        points = int(header["POINTS"][0])
    else:
        points = int(header.get("WIDTH", ["0"])[0]) * int(header.get("HEIGHT", ["1"])[0])

    mode = header["DATA"][0].lower() if header["DATA"] else ""
    if mode == "binary":
        need = points * dtype.itemsize
        if len(raw) - pos < need:
            raise ValueError("PCD binary data is truncated")
        return np.frombuffer(raw, dtype=dtype, count=points, offset=pos).copy()
    if mode == "ascii":
        rows = [r.split() for r in raw[pos:].decode("ascii").splitlines() if r.strip()]
        if len(rows) < points:
            raise ValueError("PCD ascii data is truncated")
        records = np.empty(points, dtype=dtype)
        for index, row in enumerate(rows[:points]):
            if len(row) != len(names):
                raise ValueError(f"PCD row {index} has {len(row)} values")
            records[index] = tuple(
                float(v) if dtype[n].kind == "f" else int(v) for n, v in zip(names, row))
        return records
    raise ValueError(f"unsupported PCD data encoding: {mode}")