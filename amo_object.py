import logging
import time
from typing import Any, Callable, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from pydantic import (
  BaseModel,
  ConfigDict,
  Field,
  PrivateAttr,
  ValidationError,
  field_serializer,
  field_validator,
)

from amo_client import AmoAPIError, AmoClient, RequestExecutor
from amo_types.amo_custom_field import CustomField, CustomFieldId, Tag
from amo_types.amo_response import AmoResponse
from helpers import as_list, format_payload

logger = logging.getLogger(__name__)

# amoCRM rejects an update whose updated_at is not newer than the stored one
# ("Last modified date is older than in database").
UPDATED_AT_SKEW_SECONDS = 5


class AmoObject(BaseModel):
  """Base record of an amoCRM entity (contact, lead, company, task, customer).

  Declared fields are the only keys accepted when filling a record from a
  mapping; anything else is dropped. Custom fields are keyed by field id and
  tags by name, both in insertion order, so an id or a name appears at most
  once per record.

  Lifecycle:
  - build locally (`AmoLead(name=..., client=client)`) and `await save()`, or
  - build empty and `await fill_by_id(id)`, mutate, then `await save()`.
  """

  URL: ClassVar[str] = ""
  TYPE: ClassVar[Optional[int]] = None

  CONTACT_TYPE: ClassVar[int] = 1
  LEAD_TYPE: ClassVar[int] = 2
  COMPANY_TYPE: ClassVar[int] = 3
  TASK_TYPE: ClassVar[int] = 4
  CUSTOMER_TYPE: ClassVar[int] = 12

  WRITE_FIELDS: ClassVar[Tuple[str, ...]] = (
    "id",
    "name",
    "responsible_user_id",
    "created_by",
    "created_at",
    "updated_by",
    "account_id",
    "group_id",
    "request_id",
  )

  id: Optional[int] = None
  name: Optional[str] = None
  responsible_user_id: Optional[int] = None
  created_by: Optional[int] = None
  updated_by: Optional[int] = None
  created_at: Optional[int] = None
  updated_at: Optional[int] = None
  account_id: Optional[int] = None
  group_id: Optional[int] = None
  request_id: Optional[int] = None
  custom_fields: Dict[CustomFieldId, CustomField] = Field(default_factory=dict)
  tags: Dict[str, Tag] = Field(default_factory=dict)
  subdomain: Optional[str] = None

  model_config = ConfigDict(extra="ignore", validate_assignment=True)

  _client: Optional[RequestExecutor] = PrivateAttr(default=None)
  _clock: Callable[[], float] = PrivateAttr(default_factory=lambda: time.time)

  def __init__(
    self,
    data: Optional[Mapping[str, Any]] = None,
    *,
    client: Optional[RequestExecutor] = None,
    clock: Optional[Callable[[], float]] = None,
    **fields: Any,
  ) -> None:
    super().__init__()
    values = dict(data or {}, **fields)
    subdomain = values.pop("subdomain", None)
    if subdomain is not None:
      self.subdomain = subdomain
    if client is not None:
      self._client = client
    if clock is not None:
      self._clock = clock
    self.fill(values)

  @classmethod
  def hydrated_fields(cls) -> FrozenSet[str]:
    """Field names `fill` accepts. `subdomain` is routing, never taken from data."""
    return frozenset(cls.model_fields) - {"subdomain"}

  def fill(self, data: Mapping[str, Any]) -> None:
    """Assign every declared field present in `data`; nothing changes if any value is invalid."""
    accepted = self.hydrated_fields()
    values = {key: value for key, value in data.items() if key in accepted}
    validated = type(self).model_validate(values)
    for key in values:
      setattr(self, key, getattr(validated, key))

  @field_validator("custom_fields", mode="before")
  @classmethod
  def _key_custom_fields(cls, value: Any) -> Any:
    if value is None:
      return {}
    if isinstance(value, Mapping):
      value = list(value.values())
    keyed: Dict[CustomFieldId, CustomField] = {}
    for entry in as_list(value):
      field = entry if isinstance(entry, CustomField) else CustomField.model_validate(entry)
      keyed[field.id] = field
    return keyed

  @field_validator("tags", mode="before")
  @classmethod
  def _key_tags(cls, value: Any) -> Any:
    if value is None:
      return {}
    if isinstance(value, Mapping):
      value = list(value.values())
    keyed: Dict[str, Tag] = {}
    for entry in as_list(value):
      if isinstance(entry, Tag):
        tag = entry
      elif isinstance(entry, Mapping):
        tag = Tag.model_validate(entry)
      else:
        tag = Tag(name=str(entry))
      keyed.setdefault(tag.name, tag)
    return keyed

  @field_serializer("custom_fields")
  def _dump_custom_fields(
    self, custom_fields: Dict[CustomFieldId, CustomField]
  ) -> List[Dict[str, Any]]:
    return [field.model_dump() for field in custom_fields.values()]

  @field_serializer("tags")
  def _dump_tags(self, tags: Dict[str, Tag]) -> List[Dict[str, Any]]:
    return [tag.model_dump() for tag in tags.values()]

  # Custom fields

  @property
  def custom_field_list(self) -> List[CustomField]:
    return list(self.custom_fields.values())

  def get_custom_field_value_by_id(self, id: CustomFieldId) -> Any:
    """Return the `value` of the first value of a custom field, or None."""
    field = self.custom_fields.get(id)
    if field is None or not field.values:
      return None
    return field.values[0].get("value")

  def get_custom_fields(self, ids: Union[CustomFieldId, List[CustomFieldId]]) -> List[CustomField]:
    wanted = set(as_list(ids))
    return [field for field_id, field in self.custom_fields.items() if field_id in wanted]

  def set_custom_fields(self, params: Mapping[CustomFieldId, Any]) -> "AmoObject":
    """Upsert custom field values by field id.

    A list or tuple is taken as the field's values (bare items are wrapped
    as `{"value": item}`); any other value becomes `[{"value": value}]`.
    An existing field keeps its position.
    """
    for field_id, value in params.items():
      if isinstance(value, (list, tuple)):
        values = [item if isinstance(item, Mapping) else {"value": item} for item in value]
      else:
        values = [{"value": value}]

      field = self.custom_fields.get(field_id)
      if field is not None:
        field.values = [dict(item) for item in values]
      else:
        self.custom_fields[field_id] = CustomField(id=field_id, values=values)
    return self

  # Tags

  @property
  def tag_names(self) -> List[str]:
    return list(self.tags)

  def add_tags(self, tags: Union[str, List[str]]) -> "AmoObject":
    for name in as_list(tags):
      name = str(name)
      if name not in self.tags:
        self.tags[name] = Tag(name=name)
    return self

  def del_tags(self, tags: Union[str, List[str]]) -> "AmoObject":
    for name in as_list(tags):
      self.tags.pop(str(name), None)
    return self

  # Serialization

  def get_params(self) -> Dict[str, Any]:
    """Build the item written to the API: set fields only, tag names, skewed updated_at."""
    params: Dict[str, Any] = {}
    for field_name in self.WRITE_FIELDS:
      value = getattr(self, field_name)
      if value is not None:
        params[field_name] = value

    if self.custom_fields:
      params["custom_fields"] = [field.model_dump() for field in self.custom_fields.values()]

    if self.tags:
      params["tags"] = self.tag_names

    if self.id is not None:
      params["updated_at"] = int(self._clock()) + UPDATED_AT_SKEW_SECONDS

    return params

  # Remote operations

  def _executor(self) -> RequestExecutor:
    if self._client is None:
      raise RuntimeError(
        f"{type(self).__name__} has no request executor; pass client=... when creating it"
      )
    return self._client

  def _embedded_items(self, response: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    if not response:
      return []
    try:
      return AmoResponse.model_validate(response).items
    except ValidationError as ve:
      raise AmoAPIError(
        f"Malformed response for {type(self).__name__}: {ve}",
        body=format_payload(response),
      )

  async def fill_by_id(
    self, id: Union[int, str], params: Optional[Mapping[str, Any]] = None
  ) -> "AmoObject":
    query = {"id": id, **(params or {})}
    logger.debug("Fetching %s %s from %s", type(self).__name__, id, self.subdomain)
    response = await self._executor().request(self.URL, AmoClient.GET, query, self.subdomain)

    items = self._embedded_items(response)
    if not items:
      raise AmoAPIError(f"{type(self).__name__} with ID {id} not found")

    try:
      self.fill(items[0])
    except ValidationError as ve:
      raise AmoAPIError(
        f"Malformed {type(self).__name__} with ID {id}: {ve}",
        body=format_payload(items[0]),
      )
    return self

  async def save(self, return_response: bool = False) -> Union[int, Dict[str, Any]]:
    """Create the record (no id) or update it (id set).

    Returns the id of the first item in the response, or the whole response
    when `return_response` is true. The record's own id is left untouched.
    """
    is_update = self.id is not None
    params = {"update" if is_update else "add": [self.get_params()]}
    logger.debug("Saving %s to %s: %s", type(self).__name__, self.subdomain, params)
    response = await self._executor().request(self.URL, AmoClient.POST, params, self.subdomain)

    items = self._embedded_items(response)
    if not items:
      action = "update" if is_update else "create"
      raise AmoAPIError(
        f"Failed to {action} {type(self).__name__} (empty response): {format_payload(params)}"
      )

    if return_response:
      return response

    record_id = items[0].get("id")
    if record_id is None:
      raise AmoAPIError(
        f"Response for {type(self).__name__} has no item id",
        body=format_payload(response),
      )
    return record_id
