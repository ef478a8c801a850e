"""Pydantic models for the NexHealth resources the agent reads and writes.

Only the fields the agent relies on are declared; NexHealth returns many
more and those are ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Resource(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Location(_Resource):
    id: int
    name: str
    address: str | None = None
    phone: str | None = None


class Provider(_Resource):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    speciality: str | None = None


class AppointmentType(_Resource):
    id: int
    name: str
    duration: int | None = None


class PatientBio(_Resource):
    phone_number: str | None = None
    cell_phone_number: str | None = None
    home_phone_number: str | None = None
    work_phone_number: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    address_line_1: str | None = None
    address_line_2: str | None = None


class Patient(_Resource):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    bio: PatientBio | None = None


class AppointmentSlot(_Resource):
    time: str
    provider_id: int | None = None
    operatory_id: int | None = None


class Appointment(_Resource):
    id: int
    patient_id: int | None = None
    provider_id: int | None = None
    location_id: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: str | None = None
    appointment_type_id: int | None = None
