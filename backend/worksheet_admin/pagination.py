from __future__ import annotations
import logging
import string
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import fitz  # PyMuPDF

from .errors import ValidationError
from .markup import strip_markup
from .question_store import AnyQuestion
from .schemas import QuestionKind

logger = logging.getLogger(__name__)

MM_TO_PT = 72.0 / 25.4
FOOTER_MM = 8.0


@dataclass(frozen=True)
class Block:
	"""Vertical extent of one rendered question, in content coordinates."""

	top: float
	bottom: float


@dataclass(frozen=True)
class TextLine:
	top: float
	baseline: float
	bottom: float
	x: float
	text: str
	size: float
	bold: bool = False


@dataclass
class Layout:
	width: float
	lines: List[TextLine] = field(default_factory=list)
	blocks: List[Block] = field(default_factory=list)

	@property
	def height(self) -> float:
		return max((b.bottom for b in self.blocks), default=0.0)


def compute_page_breaks(
	blocks: Sequence[Block], page_height: float, content_height: Optional[float] = None
) -> List[float]:
	"""Page end offsets such that no block straddles a break.

	Each natural boundary ``current + page_height`` that falls strictly inside a
	block moves back to that block's top. A block taller than a page that already
	starts at the page top cannot move back, so it is split at the natural boundary.
	"""
	if page_height <= 0:
		raise ValidationError("page height must be positive")
	total = content_height if content_height is not None else max((b.bottom for b in blocks), default=0.0)
	ordered = sorted(blocks, key=lambda b: b.top)
	breaks: List[float] = []
	current = 0.0
	while current < total:
		boundary = current + page_height
		if boundary >= total:
			breaks.append(total)
			break
		for block in ordered:
			if block.top < boundary < block.bottom:
				if block.top > current:
					boundary = block.top
				else:
					logger.warning(
						"question block %.1f-%.1f is taller than a page; splitting it at %.1f",
						block.top, block.bottom, boundary,
					)
				break
		breaks.append(boundary)
		current = boundary
	return breaks


def fit_breaks_to_lines(breaks: Sequence[float], lines: Sequence[TextLine]) -> List[float]:
	"""Move a break that cuts through a text line back to that line's top.

	Only breaks inside a split oversized block can cut a line; the others sit on block tops.
	"""
	fitted: List[float] = []
	previous = 0.0
	for end in breaks:
		for line in lines:
			if line.top < end < line.bottom and line.top > previous:
				end = line.top
				break
		fitted.append(end)
		previous = end
	return fitted


def wrap_text(text: str, width_mm: float, size: float, fontname: str = "helv") -> List[str]:
	width_pt = width_mm * MM_TO_PT
	out: List[str] = []
	for paragraph in text.split("\n"):
		line = ""
		for word in paragraph.split():
			candidate = f"{line} {word}" if line else word
			if not line or fitz.get_text_length(candidate, fontname=fontname, fontsize=size) <= width_pt:
				line = candidate
			else:
				out.append(line)
				line = word
		if line:
			out.append(line)
	return out


def _entries(number: int, question: AnyQuestion, show_answers: bool) -> List[tuple]:
	entries = []
	main = getattr(question, "main_question", "")
	if main:
		entries.append((0.0, main, True))
	text = strip_markup(question.question) or ("(see image)" if question.question_image else "")
	entries.append((0.0, f"{number}. {text}", False))
	if question.kind == QuestionKind.MULTIPLE_CHOICE:
		for letter, option in zip(string.ascii_lowercase, question.options):
			label = strip_markup(option.text) or ("(image)" if option.image else "")
			entries.append((6.0, f"({letter}) {label}", False))
	elif question.kind == QuestionKind.FILL_IN_BLANK and not show_answers:
		entries.append((6.0, "Answer: ____________________", False))
	if show_answers and question.kind != QuestionKind.TRIVIA and question.correct_answer is not None:
		entries.append((6.0, f"Answer: {strip_markup(question.correct_answer.text)}", True))
	return entries


def layout_questions(
	questions: Sequence[AnyQuestion],
	width_mm: float,
	*,
	font_size: float = 11.0,
	gap_mm: float = 6.0,
	show_answers: bool = False,
) -> Layout:
	line_height = font_size * 1.4 / MM_TO_PT
	layout = Layout(width=width_mm)
	y = 0.0
	for number, question in enumerate(questions, 1):
		top = y
		for indent, text, bold in _entries(number, question, show_answers):
			fontname = "hebo" if bold else "helv"
			for chunk in wrap_text(text, width_mm - indent, font_size, fontname):
				layout.lines.append(TextLine(
					top=y, baseline=y + line_height * 0.75, bottom=y + line_height, x=indent, text=chunk, size=font_size, bold=bold,
				))
				y += line_height
		layout.blocks.append(Block(top=top, bottom=y))
		y += gap_mm
	return layout


def render_pdf(
	layout: Layout,
	*,
	page_width_mm: float = 210.0,
	page_height_mm: float = 297.0,
	margin_mm: float = 10.0,
	title: Optional[str] = None,
) -> bytes:
	"""One page per break; content is shifted up by what earlier pages consumed."""
	content_height = page_height_mm - 2 * margin_mm - FOOTER_MM
	breaks = fit_breaks_to_lines(compute_page_breaks(layout.blocks, content_height, layout.height), layout.lines)
	if not breaks:
		raise ValidationError("No questions to export")
	doc = fitz.open()
	try:
		start = 0.0
		for number, end in enumerate(breaks, 1):
			page = doc.new_page(width=page_width_mm * MM_TO_PT, height=page_height_mm * MM_TO_PT)
			for line in layout.lines:
				if start <= line.top and line.bottom <= end:
					point = fitz.Point((margin_mm + line.x) * MM_TO_PT, (margin_mm + line.baseline - start) * MM_TO_PT)
					page.insert_text(point, line.text, fontsize=line.size, fontname="hebo" if line.bold else "helv")
			footer = fitz.Point(page_width_mm / 2 * MM_TO_PT - 15, (page_height_mm - margin_mm / 2) * MM_TO_PT)
			page.insert_text(footer, f"Page {number}", fontsize=9, fontname="helv")
			start = end
		if title:
			doc.set_metadata({"title": title})
		return doc.tobytes()
	finally:
		doc.close()


def export_set_pdf(
	questions: Sequence[AnyQuestion],
	*,
	page_width_mm: float = 210.0,
	page_height_mm: float = 297.0,
	margin_mm: float = 10.0,
	title: Optional[str] = None,
	show_answers: bool = False,
) -> bytes:
	if not questions:
		raise ValidationError("No questions to export")
	layout = layout_questions(questions, page_width_mm - 2 * margin_mm, show_answers=show_answers)
	logger.info("exporting %d questions (%.0f mm of content)", len(questions), layout.height)
	return render_pdf(
		layout,
		page_width_mm=page_width_mm,
		page_height_mm=page_height_mm,
		margin_mm=margin_mm,
		title=title,
	)
