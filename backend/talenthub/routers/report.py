from __future__ import annotations
import html
from datetime import datetime
from typing import Optional
from urllib.parse import urlsplit

import markdown
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from markdown.treeprocessors import Treeprocessor
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from .sessions import get_session_or_404

router = APIRouter(prefix="/sessions", tags=["report"])


class ReportDocument(BaseModel):
	markdown: str
	generated_at: Optional[str] = None


class ReportView(BaseModel):
	session_id: int
	title: Optional[str] = None
	created_at: datetime
	cycle: Optional[str] = None
	report: Optional[ReportDocument] = None


def _report_document(raw) -> Optional[ReportDocument]:
	if not isinstance(raw, dict) or not raw.get("markdown"):
		return None
	return ReportDocument(markdown=str(raw["markdown"]), generated_at=raw.get("generated_at"))


SAFE_URL_SCHEMES = ("", "http", "https", "mailto")


class _DropUnsafeUrls(Treeprocessor):
	def run(self, root):
		for el in root.iter():
			for attr in ("href", "src"):
				value = el.get(attr)
				if value is not None and urlsplit(value.strip()).scheme.lower() not in SAFE_URL_SCHEMES:
					del el.attrib[attr]


def _markdown_renderer() -> markdown.Markdown:
	# Report text is model output that quotes students; raw HTML is escaped
	md = markdown.Markdown(extensions=["tables"])
	md.preprocessors.deregister("html_block")
	md.inlinePatterns.deregister("html")
	md.treeprocessors.register(_DropUnsafeUrls(md), "drop_unsafe_urls", -10)
	return md


def render_report_html(title: str, text: str) -> str:
	body = _markdown_renderer().convert(text)
	safe_title = html.escape(title)
	return (
		"<!DOCTYPE html>\n"
		f"<html><head><meta charset=\"utf-8\"><title>{safe_title}</title></head>\n"
		f"<body><article>\n<h1>{safe_title}</h1>\n{body}\n</article></body></html>\n"
	)


@router.get("/{session_id}/report", response_model=ReportView)
def get_report(session_id: int, db: Session = Depends(get_db)):
	row = get_session_or_404(db, session_id)
	return ReportView(
		session_id=row.id,
		title=row.title,
		created_at=row.created_at,
		cycle=row.cycle.name if row.cycle else None,
		report=_report_document(row.ai_report),
	)


@router.get("/{session_id}/report.html", response_class=HTMLResponse)
def get_report_html(session_id: int, db: Session = Depends(get_db)):
	row = get_session_or_404(db, session_id)
	doc = _report_document(row.ai_report)
	if doc is None:
		raise HTTPException(status_code=404, detail="this session has no AI report yet")
	return HTMLResponse(render_report_html(row.title or "Session report", doc.markdown))
