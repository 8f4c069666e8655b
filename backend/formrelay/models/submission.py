"""
Pydantic models for the two website form submissions.

Wire field names are camelCase (what the website's JavaScript sends);
Python attributes are snake_case. Both spellings are accepted on input.

Models:
  ContactSubmission        — general contact form
  ConfigurationSubmission  — bathroom configurator form
"""

from typing import ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


_BASE_CONFIG = {"extra": "ignore", "populate_by_name": True, "frozen": True}


# ---------------------------------------------------------------------------
# Contact form
# ---------------------------------------------------------------------------

class ContactSubmission(BaseModel):
    """A general contact form submission. Required fields must be non-empty."""
    model_config = _BASE_CONFIG

    reference_prefix: ClassVar[str] = "CONTACT"

    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    # Plain str: the dispatcher performs the syntactic check so that an
    # invalid address surfaces as InvalidRecipient rather than a 422.
    email: str = Field(min_length=1)
    phone: Optional[str] = None
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    service_category: Optional[str] = Field(None, alias="service")
    urgent: bool = False

    @field_validator("first_name", "last_name", "email", "subject", "message", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# ---------------------------------------------------------------------------
# Bathroom configurator
# ---------------------------------------------------------------------------

class ContactInfo(BaseModel):
    """
    Contact block of a configuration submission.

    Every field is optional at the model level: configurator validation is
    advisory (see services.validation), so a half-filled form still reaches
    the dispatcher. A missing or malformed email is rejected there.
    """
    model_config = _BASE_CONFIG

    salutation: Optional[str] = None
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    email: str = ""
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class QualityLevel(BaseModel):
    model_config = _BASE_CONFIG

    name: Optional[str] = None
    description: Optional[str] = None


class EquipmentOption(BaseModel):
    model_config = _BASE_CONFIG

    name: Optional[str] = None
    description: Optional[str] = None
    selected: bool = False


class PopupDetails(BaseModel):
    model_config = _BASE_CONFIG

    options: List[EquipmentOption] = Field(default_factory=list)


class EquipmentItem(BaseModel):
    """One equipment entry; at most one of its options is expected to be selected."""
    model_config = _BASE_CONFIG

    id: Optional[str] = None
    name: Optional[str] = None
    selected: bool = False
    popup_details: Optional[PopupDetails] = Field(None, alias="popupDetails")

    @property
    def selected_option(self) -> Optional[EquipmentOption]:
        """The first option flagged selected, or None."""
        if self.popup_details is None:
            return None
        for option in self.popup_details.options:
            if option.selected:
                return option
        return None


class ConfigurationData(BaseModel):
    model_config = _BASE_CONFIG

    size: Optional[float] = Field(None, alias="bathroomSize")
    quality_level: Optional[QualityLevel] = Field(None, alias="qualityLevel")
    equipment: List[EquipmentItem] = Field(default_factory=list)
    floor_tiles: List[Optional[str]] = Field(default_factory=list, alias="floorTiles")
    wall_tiles: List[Optional[str]] = Field(default_factory=list, alias="wallTiles")
    heating: List[Optional[str]] = Field(default_factory=list)

    @field_validator("size", mode="before")
    @classmethod
    def _blank_size_is_none(cls, value):
        # The configurator sends "" when the size slider was never touched.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("equipment", "floor_tiles", "wall_tiles", "heating", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value


class ConfigurationSubmission(BaseModel):
    """A bathroom configurator submission."""
    model_config = _BASE_CONFIG

    reference_prefix: ClassVar[str] = "BATHROOM"

    contact: ContactInfo = Field(alias="contactData")
    configuration: ConfigurationData = Field(default_factory=ConfigurationData, alias="bathroomData")
    comments: Optional[str] = None
    additional_info_flags: Dict[str, bool] = Field(default_factory=dict, alias="additionalInfo")

    @field_validator("configuration", mode="before")
    @classmethod
    def _none_is_empty_configuration(cls, value):
        return {} if value is None else value

    @field_validator("additional_info_flags", mode="before")
    @classmethod
    def _none_is_empty_flags(cls, value):
        return {} if value is None else value


Submission = Union[ContactSubmission, ConfigurationSubmission]
