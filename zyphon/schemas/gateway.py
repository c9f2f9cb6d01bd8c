"""External gateway payloads."""

from __future__ import annotations

import json
import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

# -- chat -------------------------------------------------------------------


class ChatHistoryItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=10000)
    session_id: str | None = None
    locale: Literal["ar", "en"] | None = None
    history: list[ChatHistoryItem] = Field(default_factory=list)
    max_tokens: int | None = Field(default=None, ge=50, le=4096)


# -- image ------------------------------------------------------------------

ImageSize = Literal["512x512", "768x768", "1024x1024", "1024x768", "768x1024"]
ImageFormat = Literal["png", "jpg", "webp"]


class ImageRequest(BaseModel):
    # Upper bound comes from gateway.max_image_prompt_length
    prompt: str = Field(min_length=1)
    size: ImageSize = "1024x1024"
    format: ImageFormat = "png"


# -- pdf --------------------------------------------------------------------


class TeacherReportData(BaseModel):
    teacher_name: str = Field(min_length=1, max_length=200)
    teacher_name_en: str | None = Field(default=None, max_length=200)
    report_date: str = Field(min_length=1, max_length=50)
    course_name: str = Field(min_length=1, max_length=200)
    course_name_en: str | None = Field(default=None, max_length=200)
    total_students: int = Field(ge=0, le=10000)
    completed_students: int = Field(ge=0, le=10000)
    average_score: float | None = Field(default=None, ge=0, le=100)
    notes: str | None = Field(default=None, max_length=2000)


class CertificateData(BaseModel):
    student_name: str = Field(min_length=1, max_length=200)
    student_name_en: str | None = Field(default=None, max_length=200)
    course_name: str = Field(min_length=1, max_length=200)
    course_name_en: str | None = Field(default=None, max_length=200)
    completion_date: str = Field(min_length=1, max_length=50)
    grade: str | None = Field(default=None, max_length=20)
    score: float | None = Field(default=None, ge=0, le=100)
    certificate_number: str = Field(min_length=1, max_length=50)
    instructor_name: str | None = Field(default=None, max_length=200)
    course_duration: str | None = Field(default=None, max_length=100)


class TeacherReportRequest(BaseModel):
    type: Literal["teacher-report"]
    data: TeacherReportData


class CertificateRequest(BaseModel):
    type: Literal["certificate"]
    data: CertificateData


PdfRequest = Annotated[
    Union[TeacherReportRequest, CertificateRequest],
    Field(discriminator="type"),
]
pdf_request_adapter: TypeAdapter[PdfRequest] = TypeAdapter(PdfRequest)


# -- design spec ------------------------------------------------------------

DesignStyle = Literal["modern-kufic", "classic-kufic", "geometric", "angular"]
DesignMood = Literal["minimal-premium", "vibrant", "traditional", "tech"]
DesignAccent = Literal["emerald", "gold", "sapphire", "ruby", "purple"]
DesignBackground = Literal["black", "dark-gray", "navy", "dark-green"]

ACCENT_COLORS: dict[str, str] = {
    "emerald": "#00A86B",
    "gold": "#FFD700",
    "sapphire": "#0F52BA",
    "ruby": "#E0115F",
    "purple": "#9B30FF",
}
BACKGROUND_COLORS: dict[str, str] = {
    "black": "#000000",
    "dark-gray": "#1A1A1A",
    "navy": "#0A0A2E",
    "dark-green": "#0A1F0A",
}

HexColor = Annotated[str, Field(pattern=r"^#[0-9A-Fa-f]{6}$")]


class DesignRequest(BaseModel):
    # Upper bound comes from gateway.max_design_text_length
    brand_text_ar: str = Field(min_length=1)
    style: DesignStyle = "modern-kufic"
    mood: DesignMood = "minimal-premium"
    accent: DesignAccent = "emerald"
    background: DesignBackground = "black"


class Canvas(BaseModel):
    w: int = Field(ge=256, le=2048)
    h: int = Field(ge=256, le=2048)
    bg: HexColor


class TextLayer(BaseModel):
    value: str = Field(min_length=1)
    stroke_width: float = Field(ge=1, le=50)
    geometry_style: Literal["kufic-block", "kufic-rounded", "angular", "geometric"]
    centered: bool = True
    color: HexColor | None = None
    scale: float = Field(default=1, ge=0.5, le=3)


class IslamicPattern(BaseModel):
    enabled: bool
    opacity: float = Field(ge=0, le=1)
    tile: Literal["8-point-star", "6-point-star", "hexagonal", "octagonal"]
    scale: float = Field(default=1, ge=0.5, le=3)
    color: HexColor | None = None


class CircuitPattern(BaseModel):
    enabled: bool
    opacity: float = Field(ge=0, le=1)
    density: float = Field(ge=0.1, le=1)
    color: HexColor | None = None
    node_radius: float = Field(default=3, ge=1, le=10)


class Patterns(BaseModel):
    islamic: IslamicPattern
    circuit: CircuitPattern


class Accent(BaseModel):
    color: HexColor
    line_weight: float = Field(ge=1, le=20)
    glow: float = Field(ge=0, le=1)


class DesignSpec(BaseModel):
    canvas: Canvas
    text: TextLayer
    patterns: Patterns
    accent: Accent
    seed: int = Field(ge=0, le=999_999_999)


_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def parse_design_spec(raw: str) -> DesignSpec:
    """Parse LLM output into a DesignSpec, unwrapping a Markdown code fence.

    Raises:
        ValueError: Not JSON (json.JSONDecodeError) or not a valid spec
            (pydantic.ValidationError)
    """
    text = raw.strip()
    if text.startswith("```"):
        match = _FENCE.search(text)
        if match:
            text = match.group(1)
    return DesignSpec.model_validate(json.loads(text))


def fallback_design_spec(request: DesignRequest, seed: int) -> DesignSpec:
    """Fixed-shape spec used when the LLM answer is unusable."""
    return DesignSpec(
        canvas=Canvas(w=1024, h=1024, bg=BACKGROUND_COLORS[request.background]),
        text=TextLayer(
            value=request.brand_text_ar,
            stroke_width=10,
            geometry_style="kufic-block",
            centered=True,
            scale=1,
        ),
        patterns=Patterns(
            islamic=IslamicPattern(enabled=True, opacity=0.08, tile="8-point-star", scale=1),
            circuit=CircuitPattern(enabled=True, opacity=0.18, density=0.35, node_radius=3),
        ),
        accent=Accent(color=ACCENT_COLORS[request.accent], line_weight=3, glow=0),
        seed=seed,
    )
