"""Analyst chat: context from recent analyses, prompt rendering and completion calls."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import requests
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .records import KIND_ANALYSIS, KIND_FILE, RecordStore

logger = logging.getLogger("reportingagent.api")

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_CHAT_TEMPLATE_NAME = "chat_prompt.txt.j2"
_JINJA_ENV = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

_CONTEXT_ANALYSES = 3
_CONTEXT_KPIS = 3
_MAX_TOKENS = 800
_TEMPERATURE = 0.7

TREND_SUGGESTIONS = [
    "Which time period would you like to explore in more detail?",
    "Shall we run a comparative analysis for a specific metric?",
    "Should we dig deeper into what is driving these trends?",
]
KPI_SUGGESTIONS = [
    "Shall we compare the historical performance of these KPIs?",
    "Would you like recommendations for setting targets?",
    "Should we look at the factors influencing these KPIs?",
]
GENERAL_SUGGESTIONS = [
    "Which areas of your dataset would you like to examine more closely?",
    "Would you like help building action plans?",
    "Would you like to try a different analysis type?",
]
FALLBACK_RESPONSE = (
    "An error occurred during the analysis. A general assessment based on your current data: "
    "your uploaded files were processed successfully and are ready for trend analysis. "
    "Ask more specific questions to reach detailed analyses."
)
FALLBACK_SUGGESTIONS = [
    "Which metric would you like to examine for trend analysis?",
    "Would you like information about data quality?",
    "Would you like to compare KPIs?",
]
EMPTY_COMPLETION_RESPONSE = "Sorry, I cannot run the analysis right now. Please try again later."


class CompletionError(RuntimeError):
    """The completion service was unreachable or returned an unusable answer."""


class CompletionClient:
    """OpenAI-compatible chat completion endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        model: str = "gpt-4.1-mini",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    def complete(self, prompt: str) -> str:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": _MAX_TOKENS,
            "temperature": _TEMPERATURE,
        }
        try:
            response = self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise CompletionError(f"completion request failed: {exc}") from exc

        if not response.ok:
            raise CompletionError(f"completion API error: {response.status_code}")
        try:
            choices = response.json().get("choices") or []
        except ValueError as exc:
            raise CompletionError("completion API returned invalid JSON") from exc
        if not choices:
            raise CompletionError("completion API returned no choices")
        content = (choices[0].get("message") or {}).get("content")
        return content or EMPTY_COMPLETION_RESPONSE


@dataclass
class ChatReply:
    response: str
    suggestions: List[str]
    charts: List[Dict[str, Any]] = field(default_factory=list)


def _kpi_pair(kpi: Mapping[str, Any]) -> str:
    return f"{kpi.get('name')}: {kpi.get('value')}{kpi.get('unit') or ''}"


def build_chat_context(records: RecordStore) -> List[Dict[str, Any]]:
    context = []
    for analysis in records.list(KIND_ANALYSIS, limit=_CONTEXT_ANALYSES):
        entry: Dict[str, Any] = {"file_name": None, "row_count": 0, "executive": None, "kpis": []}
        file_id = analysis.get("fileId")
        file_record = records.get(KIND_FILE, file_id) if file_id else None
        if file_record:
            entry["file_name"] = file_record.get("originalName")
            entry["row_count"] = file_record.get("rowCount") or 0
        summary = analysis.get("summary")
        if isinstance(summary, Mapping) and summary.get("executive"):
            entry["executive"] = summary["executive"]
        kpis = analysis.get("kpis")
        if isinstance(kpis, list):
            entry["kpis"] = [_kpi_pair(kpi) for kpi in kpis[:_CONTEXT_KPIS] if isinstance(kpi, Mapping)]
        context.append(entry)
    return context


def render_prompt(message: str, analyses: List[Dict[str, Any]]) -> str:
    template = _JINJA_ENV.get_template(_CHAT_TEMPLATE_NAME)
    return template.render(message=message, analyses=analyses)


def suggest_followups(message: str) -> List[str]:
    lowered = message.lower()
    if "trend" in lowered or "analiz" in lowered or "analysis" in lowered:
        return list(TREND_SUGGESTIONS)
    if "kpi" in lowered or "performans" in lowered or "performance" in lowered:
        return list(KPI_SUGGESTIONS)
    return list(GENERAL_SUGGESTIONS)


def answer_chat(message: str, records: RecordStore, client: Optional[CompletionClient]) -> ChatReply:
    try:
        if client is None:
            raise CompletionError("completion service is not configured")
        prompt = render_prompt(message, build_chat_context(records))
        text = client.complete(prompt)
    except Exception:
        logger.exception("chat completion failed")
        return ChatReply(response=FALLBACK_RESPONSE, suggestions=list(FALLBACK_SUGGESTIONS))
    return ChatReply(response=text, suggestions=suggest_followups(message)[:3])
