from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic.alias_generators import to_camel


class EntityKind(str, Enum):
    STUDENTS = 'students'
    ATTENDANCE = 'attendance'
    FEES = 'fees'
    VEHICLES = 'vehicles'
    ATTENTION = 'attention'
    DESTINATIONS = 'destinations'


SCOPED_KINDS = (
    EntityKind.STUDENTS,
    EntityKind.ATTENDANCE,
    EntityKind.FEES,
    EntityKind.VEHICLES,
    EntityKind.DESTINATIONS,
)

AttendanceStatus = Literal['Present', 'Absent']
PaymentStatus = Literal['Paid', 'Partially Paid', 'Pending']
FeeType = Literal['Tuition', 'Transport', 'Other']
Priority = Literal['Low', 'Medium', 'High']


class StoreRecord(BaseModel):
    """Base for records kept in the remote store under camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={'id'}, exclude_none=True)


class Student(StoreRecord):
    id: str = ''
    name: str = ''
    registration_number: str = ''
    series_number: str = ''
    department: str = ''
    academic_year: str = ''
    created_at: str = ''


class DestinationRecord(StoreRecord):
    student_id: str
    pickup_point: str = ''
    drop_point: str = ''
    route_name: str = ''
    distance: float = 0

    @property
    def id(self) -> str:
        return self.student_id

    def to_store(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AttendanceRecord(StoreRecord):
    id: str = ''
    student_id: str = ''
    date: str = ''
    status: AttendanceStatus = 'Absent'


class FeesRecord(StoreRecord):
    id: str = ''
    student_id: str = ''
    total_amount: float = 0
    paid_amount: float = 0
    fee_type: FeeType = 'Transport'
    payment_date: str = ''
    due_date: str = ''
    fee_date: str = ''
    status: PaymentStatus = 'Pending'
    created_at: str = ''


class VehicleRecord(StoreRecord):
    id: str = ''
    bus_number: str = ''
    driver_name: str = ''
    staff_name: Optional[str] = None
    driver_contact: str = ''

    insurance_date: str = ''
    insurance_due_date: str = ''
    fc_date: str = ''
    fc_due_date: str = ''
    pollution_date: str = ''
    pollution_due_date: str = ''
    sticker_date: str = ''
    sticker_due_date: str = ''
    fire_extinguisher_date: str = ''
    fire_extinguisher_due_date: str = ''
    first_aid_box_date: str = ''
    first_aid_box_due_date: str = ''

    vehicle_oil_km: float = Field(default=0, alias='vehicleOilKM')
    vehicle_oil_date: str = ''
    engine_oil_km: float = Field(default=0, alias='engineOilKM')
    engine_oil_date: str = ''
    brake_oil_km: float = Field(default=0, alias='brakeOilKM')
    brake_oil_date: str = ''
    steering_oil_km: float = Field(default=0, alias='steeringOilKM')
    steering_oil_date: str = ''
    air_check_date: str = ''
    grease_check_date: str = ''

    tyre1_number: str = ''
    tyre2_number: str = ''

    diesel_filling_date: str = ''
    diesel_km_reading: float = Field(default=0, alias='dieselKMReading')
    previous_diesel_km: float = Field(default=0, alias='previousDieselKM')
    km_calculation: float = 0
    stack: str = ''
    usage: str = ''

    created_at: str = ''


class AttentionMessage(StoreRecord):
    id: str = ''
    title: str = ''
    message: str = ''
    date: str = ''
    priority: Priority = 'Medium'


RECORD_MODELS: dict[EntityKind, type[StoreRecord]] = {
    EntityKind.STUDENTS: Student,
    EntityKind.ATTENDANCE: AttendanceRecord,
    EntityKind.FEES: FeesRecord,
    EntityKind.VEHICLES: VehicleRecord,
    EntityKind.ATTENTION: AttentionMessage,
    EntityKind.DESTINATIONS: DestinationRecord,
}


def partial_model(model: type[StoreRecord], name: str) -> type[StoreRecord]:
    """All-optional copy of a record model, used for partial update payloads."""
    fields: dict[str, Any] = {}
    for field_name, info in model.model_fields.items():
        if field_name in ('id', 'created_at'):
            continue
        alias = info.alias or to_camel(field_name)
        fields[field_name] = (Optional[info.annotation], Field(default=None, alias=alias))
    return create_model(name, __base__=StoreRecord, **fields)


def update_payload(update: StoreRecord | Mapping[str, Any]) -> dict[str, Any]:
    """Only the fields the caller actually sent, under store field names."""
    if isinstance(update, Mapping):
        return {key: value for key, value in update.items() if key != 'id'}
    return update.model_dump(by_alias=True, exclude_unset=True, exclude={'id'})


# Request bodies

class StudentCreate(StoreRecord):
    name: str = ''
    registration_number: str = ''
    series_number: str = ''
    department: str = ''
    academic_year: str = ''


StudentUpdate = partial_model(Student, 'StudentUpdate')
FeesUpdate = partial_model(FeesRecord, 'FeesUpdate')
VehicleUpdate = partial_model(VehicleRecord, 'VehicleUpdate')
AttentionUpdate = partial_model(AttentionMessage, 'AttentionUpdate')


class FeesCreate(StoreRecord):
    student_id: str = ''
    total_amount: float = 0
    paid_amount: float = 0
    fee_type: FeeType = 'Transport'
    payment_date: str = ''
    due_date: str = ''
    fee_date: str = ''
    status: PaymentStatus = 'Pending'


class VehicleCreate(VehicleRecord):
    pass


class AttentionCreate(StoreRecord):
    title: str
    message: str = ''
    date: str = ''
    priority: Priority = 'Medium'


class AttendanceMarkRequest(StoreRecord):
    student_id: str
    date: str
    status: AttendanceStatus


class AttendanceBatchRequest(StoreRecord):
    date: str
    statuses: dict[str, AttendanceStatus] = Field(default_factory=dict)


class SignInRequest(BaseModel):
    email: str
    password: str


class FeesGateSetupRequest(BaseModel):
    username: str
    password: str
    confirm_password: str
    recovery_code: str


class FeesGateLoginRequest(BaseModel):
    username: str
    password: str


class FeesGateResetRequest(BaseModel):
    recovery_code: str
    username: str
    password: str
    confirm_password: str


class VehicleDocumentUpdate(StoreRecord):
    issue_date: str = ''
    due_date: str = ''


class OilLogUpdate(StoreRecord):
    km: float = 0
    date: str = ''
