from pydantic import BaseModel
from typing import List

from .booking import BookingResponse


class ArchivedBookingList(BaseModel):
    items: List[BookingResponse]
    total: int
    limit: int
    offset: int


class PermanentDeleteResponse(BaseModel):
    table_name: str
    record_id: str
    deleted: bool = True
