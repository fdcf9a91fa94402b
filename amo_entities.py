from typing import ClassVar, Dict, Optional, Tuple, Type

from amo_object import AmoObject


class AmoContact(AmoObject):
  URL: ClassVar[str] = "/api/v2/contacts"
  TYPE: ClassVar[Optional[int]] = AmoObject.CONTACT_TYPE
  WRITE_FIELDS: ClassVar[Tuple[str, ...]] = AmoObject.WRITE_FIELDS + ("company_name",)

  # write-only: links the contact to a company by name on create
  company_name: Optional[str] = None


class AmoLead(AmoObject):
  URL: ClassVar[str] = "/api/v2/leads"
  TYPE: ClassVar[Optional[int]] = AmoObject.LEAD_TYPE
  WRITE_FIELDS: ClassVar[Tuple[str, ...]] = AmoObject.WRITE_FIELDS + (
    "status_id",
    "pipeline_id",
    "sale",
    "loss_reason_id",
    "closed_at",
  )

  status_id: Optional[int] = None
  pipeline_id: Optional[int] = None
  sale: Optional[int] = None
  loss_reason_id: Optional[int] = None
  closed_at: Optional[int] = None
  is_deleted: Optional[bool] = None


class AmoCompany(AmoObject):
  URL: ClassVar[str] = "/api/v2/companies"
  TYPE: ClassVar[Optional[int]] = AmoObject.COMPANY_TYPE


class AmoTask(AmoObject):
  URL: ClassVar[str] = "/api/v2/tasks"
  TYPE: ClassVar[Optional[int]] = AmoObject.TASK_TYPE
  WRITE_FIELDS: ClassVar[Tuple[str, ...]] = AmoObject.WRITE_FIELDS + (
    "element_id",
    "element_type",
    "task_type",
    "text",
    "complete_till_at",
    "is_completed",
  )

  element_id: Optional[int] = None
  element_type: Optional[int] = None
  task_type: Optional[int] = None
  text: Optional[str] = None
  complete_till_at: Optional[int] = None
  is_completed: Optional[bool] = None


class AmoCustomer(AmoObject):
  URL: ClassVar[str] = "/api/v2/customers"
  TYPE: ClassVar[Optional[int]] = AmoObject.CUSTOMER_TYPE
  WRITE_FIELDS: ClassVar[Tuple[str, ...]] = AmoObject.WRITE_FIELDS + (
    "next_price",
    "next_date",
    "periodicity",
    "period_id",
  )

  next_price: Optional[int] = None
  next_date: Optional[int] = None
  periodicity: Optional[int] = None
  period_id: Optional[int] = None


ENTITY_KINDS: Dict[str, Type[AmoObject]] = {
  "contacts": AmoContact,
  "leads": AmoLead,
  "companies": AmoCompany,
  "tasks": AmoTask,
  "customers": AmoCustomer,
}
