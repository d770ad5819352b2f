"""Parsing and compact formatting of SVG path data and transform lists."""

import math
import re
from typing import List, Optional, Tuple

NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
SEPARATOR_RE = re.compile(r"[\s,]*")
TRANSFORM_RE = re.compile(r"\s*(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)\s*,?")

# parameters consumed by one repetition of each path command
PARAM_COUNTS = {"m": 2, "l": 2, "h": 1, "v": 1, "c": 6, "s": 4, "q": 4, "t": 2, "a": 7, "z": 0}

# allowed argument counts of transform functions
TRANSFORM_ARITY = {
    "matrix": (6,),
    "translate": (1, 2),
    "scale": (1, 2),
    "rotate": (1, 3),
    "skewX": (1,),
    "skewY": (1,),
}

DEFAULT_PRECISION = 3

PathCommand = Tuple[str, List[float]]
BBox = Tuple[float, float, float, float]


def format_number(value: float, precision: int = DEFAULT_PRECISION) -> str:
    """Shortest fixed-point rendering of a rounded number ("0.50" -> ".5")."""
    rounded = round(value, precision)
    if rounded == 0:
        return "0"
    text = f"{rounded:.{precision}f}".rstrip("0").rstrip(".")
    if text.startswith("0."):
        return text[1:]
    if text.startswith("-0."):
        return "-" + text[2:]
    return text


def parse_numbers(text: str) -> List[float]:
    return [float(n) for n in NUMBER_RE.findall(text)]


def parse_path_data(d: str) -> List[PathCommand]:
    """
    Parse a path ``d`` attribute into (command, parameters) groups.

    Implicit command repetition is kept in the same group, so the parameter
    list of a group may hold several repetitions.

    Raises:
        ValueError: If the path data is malformed
    """
    commands: List[PathCommand] = []
    pos = 0
    length = len(d)

    while True:
        pos = SEPARATOR_RE.match(d, pos).end()
        if pos >= length:
            break

        command = d[pos]
        if command.lower() not in PARAM_COUNTS:
            raise ValueError(f"unexpected character {command!r} at {pos}")
        pos += 1

        count = PARAM_COUNTS[command.lower()]
        params: List[float] = []
        while count:
            pos = SEPARATOR_RE.match(d, pos).end()
            if pos >= length:
                break
            # arc flags are single digits and may be written without separators
            if command.lower() == "a" and len(params) % 7 in (3, 4):
                if d[pos] not in "01":
                    raise ValueError(f"invalid arc flag at {pos}")
                params.append(float(d[pos]))
                pos += 1
                continue
            match = NUMBER_RE.match(d, pos)
            if not match:
                break
            params.append(float(match.group()))
            pos = match.end()

        if count and (not params or len(params) % count):
            raise ValueError(f"wrong number of parameters for {command!r}")
        commands.append((command, params))

    if commands and commands[0][0] not in "Mm":
        raise ValueError("path data must start with a moveto")
    return commands


def format_path_data(commands: List[PathCommand], precision: int = DEFAULT_PRECISION) -> str:
    parts = []
    for command, params in commands:
        parts.append(command + " ".join(format_number(p, precision) for p in params))
    return "".join(parts)


def clean_path_data(d: str, precision: int = DEFAULT_PRECISION) -> str:
    """Round and compact path data; malformed data is returned unchanged."""
    try:
        commands = parse_path_data(d)
    except ValueError:
        return d
    return format_path_data(commands, precision)


def path_bbox(commands: List[PathCommand]) -> Optional[BBox]:
    """
    Conservative bounding box of a path.

    Control points are included and arcs are padded by their radius, so the
    box always contains the rendered geometry (stroke width excluded).
    """
    xs: List[float] = []
    ys: List[float] = []
    cx = cy = 0.0
    sx = sy = 0.0

    def add(x: float, y: float) -> None:
        xs.append(x)
        ys.append(y)

    for command, params in commands:
        relative = command.islower()
        kind = command.lower()

        if kind == "z":
            cx, cy = sx, sy
            continue

        step = PARAM_COUNTS[kind]
        for i in range(0, len(params), step):
            args = params[i : i + step]
            ox, oy = (cx, cy) if relative else (0.0, 0.0)

            if kind == "h":
                cx = args[0] + (cx if relative else 0.0)
                add(cx, cy)
            elif kind == "v":
                cy = args[0] + (cy if relative else 0.0)
                add(cx, cy)
            elif kind == "a":
                rx, ry, x, y = abs(args[0]), abs(args[1]), args[5] + ox, args[6] + oy
                radius = max(rx, ry, math.hypot(x - cx, y - cy))
                for px, py in ((cx, cy), (x, y)):
                    add(px - radius, py - radius)
                    add(px + radius, py + radius)
                cx, cy = x, y
            else:
                for j in range(0, step, 2):
                    add(args[j] + ox, args[j + 1] + oy)
                cx, cy = args[step - 2] + ox, args[step - 1] + oy
                if kind == "m" and i == 0:
                    sx, sy = cx, cy

    if not xs:
        return None
    return min(xs), min(ys), max(xs), max(ys)


def bboxes_overlap(a: BBox, b: BBox) -> bool:
    return a[0] < b[2] and b[0] < a[2] and a[1] < b[3] and b[1] < a[3]


def _is_identity(name: str, values: List[float]) -> bool:
    if name == "translate":
        return all(v == 0 for v in values)
    if name == "scale":
        return all(v == 1 for v in values)
    if name in ("rotate", "skewX", "skewY"):
        return values[0] == 0
    return values == [1, 0, 0, 1, 0, 0]


def clean_transform(value: str, precision: int = DEFAULT_PRECISION) -> str:
    """
    Round transform arguments and drop identity transforms.

    Returns an empty string when every transform was an identity, and the
    stripped input when it cannot be parsed.
    """
    items = []
    pos = 0
    stripped = value.strip()
    while pos < len(stripped):
        match = TRANSFORM_RE.match(stripped, pos)
        if not match:
            return stripped
        pos = match.end()
        name = match.group(1)
        values = [round(v, precision) for v in parse_numbers(match.group(2))]
        if len(values) not in TRANSFORM_ARITY[name]:
            return stripped
        if _is_identity(name, values):
            continue
        items.append(f"{name}({' '.join(format_number(v, precision) for v in values)})")
    return " ".join(items)
