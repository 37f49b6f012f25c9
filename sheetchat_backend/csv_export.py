from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Iterable, Sequence

_QUOTE_TRIGGERS = (",", '"', "\n", "\r")


def format_number(value: float) -> str:
  """
  Format a float the way a JavaScript number prints.

  Shortest round-trip digits, plain notation from 1e-6 up to 1e21 and
  exponent notation (``1e+21``, ``1.5e-7``) outside that range.
  """
  if math.isnan(value):
    return "NaN"
  if math.isinf(value):
    return "Infinity" if value > 0 else "-Infinity"
  if value == 0:
    return "0"

  sign = "-" if value < 0 else ""
  parsed = Decimal(repr(abs(value))).normalize().as_tuple()
  digits = "".join(str(d) for d in parsed.digits)
  k = len(digits)
  n = k + parsed.exponent

  if k <= n <= 21:
    return sign + digits + "0" * (n - k)
  if 0 < n <= 21:
    return sign + digits[:n] + "." + digits[n:]
  if -6 < n <= 0:
    return sign + "0." + "0" * (-n) + digits

  exponent = n - 1
  exponent_text = ("+" if exponent >= 0 else "-") + str(abs(exponent))
  if k == 1:
    return f"{sign}{digits}e{exponent_text}"
  return f"{sign}{digits[0]}.{digits[1:]}e{exponent_text}"


def cell_to_text(value: Any) -> str:
  """
  Render a cell the way the browser client displays it: booleans in lower
  case and floats in JavaScript number notation.
  """
  if value is None:
    return ""
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, float):
    return format_number(value)
  return str(value)


def escape_cell(value: Any) -> str:
  text = cell_to_text(value)
  if any(ch in text for ch in _QUOTE_TRIGGERS):
    return '"' + text.replace('"', '""') + '"'
  return text


def rows_to_csv(rows: Iterable[Sequence[Any]]) -> str:
  """
  Encode a grid of cell values as CSV text.

  Rows are joined with a bare newline, and ragged rows are written as they
  are. An empty grid gives an empty string.
  """
  return "\n".join(",".join(escape_cell(cell) for cell in row) for row in rows)
