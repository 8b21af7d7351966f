"""Pydantic models for patients, their editable drafts and local cache records."""

from __future__ import annotations

import base64
import binascii
import copy
import logging
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "Patient"
DEFAULT_PHOTO_CONTENT_TYPE = "image/jpeg"


class Gender(str, Enum):
    """FHIR ``AdministrativeGender``."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"

    @classmethod
    def from_wire(cls, value: str) -> "Gender":
        """Decode a wire code, falling back to ``UNKNOWN`` for anything unrecognized."""
        try:
            return cls(value)
        except ValueError:
            logger.debug("Unrecognized gender code %r decoded as 'unknown'", value)
            return cls.UNKNOWN


class ContactPoint(BaseModel):
    """A FHIR ``ContactPoint`` (phone, email, ...).

    Elements other than ``system``/``value``/``use`` (``rank``, ``period``)
    are kept as pydantic extras and written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    system: str | None = Field(default=None, description="phone | fax | email | pager | url | sms | other")
    value: str | None = Field(default=None, description="The actual contact point details")
    use: str | None = Field(default=None, description="home | work | temp | old | mobile")

    @classmethod
    def from_fhir(cls, data: dict) -> "ContactPoint":
        return cls.model_validate(data)

    def to_fhir(self) -> dict:
        return self.model_dump(exclude_none=True)


class Patient(BaseModel):
    """The canonical patient record, as the FHIR server knows it.

    ``id`` is assigned by the server on the first successful create; a patient
    whose ``id`` is ``None`` has never been uploaded.
    """

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    id: str | None = Field(default=None, description="Server-assigned logical ID")
    given_name: str | None = None
    family_name: str | None = None
    birth_date: date | None = None
    gender: str | None = Field(default=None, description="Raw AdministrativeGender wire code")
    telecom: list[ContactPoint] = Field(default_factory=list)
    photo: bytes | None = None
    photo_content_type: str = DEFAULT_PHOTO_CONTENT_TYPE
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Unmodelled elements of the server's resource, merged back into to_fhir()",
    )

    @property
    def reference(self) -> str | None:
        """``Patient/<id>`` for an uploaded patient, otherwise ``None``."""
        if self.id is None:
            return None
        return f"{RESOURCE_TYPE}/{self.id}"

    @classmethod
    def from_fhir(cls, resource: dict) -> "Patient":
        """Parse a FHIR Patient JSON object.

        Both R4 (``family`` is a string) and DSTU2 (``family`` is a list)
        name shapes are accepted. The first given name of the first name, its
        family name and the first decodable photo become fields; everything
        else (identifiers, addresses, further names and given names, meta)
        is kept in ``extra`` so a later PUT does not erase it.

        Raises:
            ValueError: if ``resource`` is not a Patient resource, or is one
                whose modelled elements have the wrong JSON types.
        """
        if not isinstance(resource, dict) or resource.get("resourceType") != RESOURCE_TYPE:
            kind = resource.get("resourceType") if isinstance(resource, dict) else type(resource).__name__
            raise ValueError(f"Expected a {RESOURCE_TYPE} resource, got {kind!r}")
        try:
            return cls._parse(resource)
        except (AttributeError, IndexError, KeyError, TypeError) as exc:
            raise ValueError(f"Malformed {RESOURCE_TYPE} resource: {exc}") from exc

    @classmethod
    def _parse(cls, resource: dict) -> "Patient":
        extra = copy.deepcopy(resource)
        for key in ("resourceType", "id", "gender", "telecom"):
            extra.pop(key, None)

        given_name = family_name = None
        names = extra.pop("name", None) or []
        if names:
            first = {**names[0]}
            family_name = first.pop("family", None)
            if isinstance(family_name, list):
                family_name = family_name[0] if family_name else None
            given = list(first.pop("given", None) or [])
            if given:
                given_name = given.pop(0)
            if given:
                first["given"] = given
            if first or len(names) > 1:
                extra["name"] = [first, *names[1:]]

        birth_date = _parse_birth_date(extra.get("birthDate"))
        if birth_date is not None:
            extra.pop("birthDate")

        photo = None
        photo_content_type = DEFAULT_PHOTO_CONTENT_TYPE
        photos = extra.pop("photo", None) or []
        if photos:
            photo_content_type = photos[0].get("contentType") or DEFAULT_PHOTO_CONTENT_TYPE
            photo = _decode_base64(photos[0].get("data"))
            if photo is not None:
                photos = photos[1:]
        if photos:
            extra["photo"] = photos

        return cls(
            id=resource.get("id"),
            given_name=given_name,
            family_name=family_name,
            birth_date=birth_date,
            gender=resource.get("gender"),
            telecom=[ContactPoint.from_fhir(t) for t in resource.get("telecom") or []],
            photo=photo,
            photo_content_type=photo_content_type,
            extra=extra,
        )

    def to_fhir(self) -> dict:
        """Encode as a FHIR R4 Patient JSON object. ``id`` is only present when set.

        ``extra`` is written first and the modelled fields overwrite it; the
        edited given name goes in front of any further given names.
        """
        resource: dict[str, Any] = {"resourceType": RESOURCE_TYPE}
        if self.id is not None:
            resource["id"] = self.id

        extra = copy.deepcopy(self.extra)
        names = extra.pop("name", None) or []
        photos = extra.pop("photo", None) or []
        resource.update(extra)

        first = names[0] if names else {}
        name: dict[str, Any] = {}
        if self.family_name:
            name["family"] = self.family_name
        given = ([self.given_name] if self.given_name else []) + list(first.get("given") or [])
        if given:
            name["given"] = given
        name.update({k: v for k, v in first.items() if k not in ("family", "given")})
        names = [name, *names[1:]] if name else names[1:]
        if names:
            resource["name"] = names

        if self.gender is not None:
            resource["gender"] = self.gender
        if self.birth_date is not None:
            resource["birthDate"] = self.birth_date.isoformat()
        if self.telecom:
            resource["telecom"] = [t.to_fhir() for t in self.telecom]
        if self.photo is not None:
            photos.insert(0, {
                "contentType": self.photo_content_type,
                "data":        base64.b64encode(self.photo).decode("ascii"),
            })
        if photos:
            resource["photo"] = photos
        return resource


class Draft(BaseModel):
    """Editable working copy of a patient; any field may still be unfilled."""

    model_config = ConfigDict(validate_assignment=True)

    given_name: str | None = None
    family_name: str | None = None
    birth_date: date | None = None
    gender: Gender | None = None
    telecom: list[ContactPoint] = Field(default_factory=list)
    photo: bytes | None = None
    photo_content_type: str = DEFAULT_PHOTO_CONTENT_TYPE
    extra: dict[str, Any] = Field(default_factory=dict, repr=False)

    @property
    def can_save(self) -> bool:
        return (
            bool(self.given_name and self.given_name.strip())
            and bool(self.family_name and self.family_name.strip())
            and self.birth_date is not None
            and self.gender is not None
        )

    @classmethod
    def from_patient(cls, patient: Patient) -> "Draft":
        return cls(
            given_name=patient.given_name,
            family_name=patient.family_name,
            birth_date=patient.birth_date,
            gender=Gender.from_wire(patient.gender) if patient.gender is not None else None,
            telecom=[t.model_copy() for t in patient.telecom],
            photo=patient.photo,
            photo_content_type=patient.photo_content_type,
            extra=copy.deepcopy(patient.extra),
        )

    def to_patient(self, patient_id: str | None = None) -> Patient:
        return Patient(
            id=patient_id,
            given_name=self.given_name,
            family_name=self.family_name,
            birth_date=self.birth_date,
            gender=self.gender.value if self.gender is not None else None,
            telecom=[t.model_copy() for t in self.telecom],
            photo=self.photo,
            photo_content_type=self.photo_content_type,
            extra=copy.deepcopy(self.extra),
        )


class LocalRecord(BaseModel):
    """Durable local cache entry, keyed by a local key independent of the server id."""

    local_key: str
    patient: Patient

    @property
    def server_id(self) -> str | None:
        return self.patient.id


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------

def _parse_birth_date(value: object) -> date | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"birthDate must be a FHIR date string, got {type(value).__name__}")
    try:
        return date.fromisoformat(value)
    except ValueError:
        # Partial FHIR dates ("1990", "1990-01") have no single day to map to.
        logger.warning("Ignoring birthDate %r: not a full YYYY-MM-DD date", value)
        return None


def _decode_base64(data: str | None) -> bytes | None:
    if not data:
        return None
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error:
        logger.warning("Ignoring photo: attachment data is not valid base64")
        return None
