from collections.abc import Iterable, Mapping
from pprint import pformat
from typing import Any, List


def as_list(value: Any) -> List[Any]:
  """Normalize a scalar-or-collection argument into a list.

  Strings, bytes and mappings are treated as a single item.
  """
  if value is None:
    return []
  if isinstance(value, (str, bytes, Mapping)):
    return [value]
  if isinstance(value, Iterable):
    return list(value)
  return [value]


def format_payload(params: Any) -> str:
  return pformat(params, indent=2, sort_dicts=False)
