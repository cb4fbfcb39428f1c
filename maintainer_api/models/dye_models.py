# maintainer_api/models/dye_models.py
"""Schemas for the two writable data files: the dye catalogue and locale files"""

from typing import Annotated, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    StringConstraints,
    TypeAdapter,
)

LocaleCode = Literal["en", "ja", "de", "fr", "ko", "zh"]

Channel = Annotated[int, Field(ge=0, le=255)]
Percent = Annotated[float, Field(ge=0, le=100)]
NonEmpty = Annotated[str, StringConstraints(min_length=1)]


class _Schema(BaseModel):
    # Unknown keys are dropped; JSON keys are the camelCase aliases
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RGB(_Schema):
    r: Channel
    g: Channel
    b: Channel


class HSV(_Schema):
    h: Annotated[float, Field(ge=0, le=360)]
    s: Percent
    v: Percent


class Dye(_Schema):
    """One entry of colors_xiv.json"""
    item_id: Optional[PositiveInt] = Field(alias="itemID")
    category: Annotated[str, Field(min_length=1, max_length=100)]
    name: Annotated[str, Field(min_length=1, max_length=200)]
    hex: Annotated[str, Field(pattern=r"^#[0-9a-fA-F]{6}$")]
    acquisition: Annotated[str, Field(min_length=1, max_length=100)]
    price: Optional[NonNegativeInt]
    currency: Optional[Annotated[str, StringConstraints(min_length=1, max_length=50)]]
    rgb: RGB
    hsv: HSV
    is_metallic: bool = Field(alias="isMetallic")
    is_pastel: bool = Field(alias="isPastel")
    is_dark: bool = Field(alias="isDark")
    is_cosmic: bool = Field(alias="isCosmic")


DyeArray = Annotated[List[Dye], Field(min_length=1)]


class LocaleMeta(_Schema):
    version: NonEmpty
    generated: NonEmpty
    dye_count: NonNegativeInt = Field(alias="dyeCount")


class LocaleLabels(_Schema):
    dye: NonEmpty
    dark: NonEmpty
    metallic: NonEmpty
    pastel: NonEmpty
    cosmic: NonEmpty
    cosmic_exploration: NonEmpty = Field(alias="cosmicExploration")
    cosmic_fortunes: NonEmpty = Field(alias="cosmicFortunes")


class LocaleData(_Schema):
    """One locale file (en.json, ja.json, ...)"""
    locale: LocaleCode
    meta: LocaleMeta
    labels: LocaleLabels
    dye_names: Annotated[Dict[str, str], Field(min_length=1)] = Field(alias="dyeNames")
    categories: Optional[Dict[str, str]] = None
    acquisitions: Optional[Dict[str, str]] = None
    harmony_types: Optional[Dict[str, str]] = Field(default=None, alias="harmonyTypes")
    vision_types: Optional[Dict[str, str]] = Field(default=None, alias="visionTypes")
    jobs: Optional[Dict[str, str]] = None
    grand_companies: Optional[Dict[str, str]] = Field(default=None, alias="grandCompanies")
    metallic_dye_ids: Optional[List[PositiveInt]] = Field(default=None, alias="metallicDyeIds")


# Built once; reused by the schema stage and the handlers
DYE_ARRAY_ADAPTER: TypeAdapter = TypeAdapter(DyeArray)
LOCALE_DATA_ADAPTER: TypeAdapter = TypeAdapter(LocaleData)
