"""Content brief schema: the structured object the LLM is asked to produce."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class TitleSuggestions(BaseModel):
    click_focused: str = Field("", alias="clickFocused")
    seo_focused: str = Field("", alias="seoFocused")

    model_config = {"populate_by_name": True}


class OutlineSection(BaseModel):
    level: Literal["H1", "H2", "H3"]
    title: str
    content: str = ""
    key_info: Optional[str] = Field(None, alias="keyInfo")
    storytelling: Optional[str] = None

    model_config = {"populate_by_name": True}


class FaqItem(BaseModel):
    question: str
    answer: str


class SchemaStrategy(BaseModel):
    main_schema: str = Field("Article", alias="mainSchema")
    supporting_schemas: list[str] = Field(default_factory=list, alias="supportingSchemas")
    reasoning: str = ""

    model_config = {"populate_by_name": True}


class ContentBrief(BaseModel):
    """SEO content brief for one topic.

    Field aliases follow the camelCase JSON the model is prompted to return.
    ``degraded`` is set when the brief is the local fallback, not an LLM answer.
    """
    topic: str
    user_intent: str = Field("", alias="userIntent")
    competitor_tone: str = Field("", alias="competitorTone")
    unique_value: str = Field("", alias="uniqueValue")
    competitor_analysis_summary: str = Field("", alias="competitorAnalysisSummary")
    primary_keyword: str = Field("", alias="primaryKeyword")
    secondary_keywords: list[str] = Field(default_factory=list, alias="secondaryKeywords")
    title_suggestions: TitleSuggestions = Field(default_factory=TitleSuggestions, alias="titleSuggestions")
    meta_description: str = Field("", alias="metaDescription")
    content_outline: list[OutlineSection] = Field(default_factory=list, alias="contentOutline")
    faq_section: list[FaqItem] = Field(default_factory=list, alias="faqSection")
    schema_strategy: SchemaStrategy = Field(default_factory=SchemaStrategy, alias="schemaStrategy")
    degraded: bool = False
    failure_reason: Optional[str] = None

    model_config = {"populate_by_name": True}
