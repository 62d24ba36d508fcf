import fitz
import pytest

from worksheet_admin.errors import ValidationError
from worksheet_admin.pagination import (
	Block,
	TextLine,
	compute_page_breaks,
	export_set_pdf,
	fit_breaks_to_lines,
	layout_questions,
)
from worksheet_admin.schemas import Question, QuestionKind


def test_breaks_move_back_to_block_tops():
	blocks = [Block(0, 100), Block(100, 200), Block(200, 300)]
	assert compute_page_breaks(blocks, 150) == [100, 200, 300]


def test_break_on_block_edge_stays():
	assert compute_page_breaks([Block(0, 150), Block(150, 300)], 150) == [150, 300]


def test_no_block_straddles_a_break():
	blocks, y = [], 0.0
	for height in (40, 75, 20, 90, 60, 30, 110, 45, 80, 25):
		blocks.append(Block(y, y + height))
		y += height + 5
	breaks = compute_page_breaks(blocks, 120)
	assert breaks[-1] == blocks[-1].bottom
	start = 0.0
	for end in breaks:
		assert 0 < end - start <= 120
		for block in blocks:
			assert not (block.top < end < block.bottom)
		start = end


def test_oversized_block_is_split():
	assert compute_page_breaks([Block(0, 400)], 150) == [150, 300, 400]


def test_empty_and_invalid():
	assert compute_page_breaks([], 150) == []
	with pytest.raises(ValidationError):
		compute_page_breaks([Block(0, 10)], 0)


def _questions(n):
	return [
		Question(id=f"q{i}", question=f"Question number {i}: how many apples are left?", options=["1", "2", "3", "4"])
		for i in range(1, n + 1)
	]


def test_layout_blocks_follow_each_other():
	layout = layout_questions(_questions(5), 190)
	assert len(layout.blocks) == 5
	for prev, nxt in zip(layout.blocks, layout.blocks[1:]):
		assert prev.bottom <= nxt.top


def test_export_refuses_empty_set():
	with pytest.raises(ValidationError):
		export_set_pdf([])


def test_export_pdf_pages():
	data = export_set_pdf(_questions(40), title="2024-05-01_Week")
	assert data.startswith(b"%PDF")
	doc = fitz.open(stream=data, filetype="pdf")
	try:
		assert doc.page_count > 1
		assert "Page 2" in doc[1].get_text()
		text = "".join(page.get_text() for page in doc)
		assert "Question number 40" in text
	finally:
		doc.close()


def test_export_with_answers():
	question = Question(question="Capital of France is ____", kind=QuestionKind.FILL_IN_BLANK, correct_answer="Paris")
	data = export_set_pdf([question], show_answers=True)
	doc = fitz.open(stream=data, filetype="pdf")
	try:
		assert "Answer: Paris" in doc[0].get_text()
	finally:
		doc.close()


def test_breaks_never_cut_a_text_line():
	lines = [TextLine(top=i * 5.0, baseline=i * 5.0 + 4, bottom=(i + 1) * 5.0, x=0, text=str(i), size=11) for i in range(10)]
	assert fit_breaks_to_lines([12.0, 22.5, 50.0], lines) == [10.0, 20.0, 50.0]
	assert fit_breaks_to_lines([15.0, 50.0], lines) == [15.0, 50.0]


def test_oversized_question_keeps_every_line_inside_its_page():
	words = " ".join(f"word{i}" for i in range(400))
	question = Question(question=words, kind=QuestionKind.TRIVIA)
	data = export_set_pdf([question], page_height_mm=80, margin_mm=10)
	doc = fitz.open(stream=data, filetype="pdf")
	try:
		assert doc.page_count > 1
		text = " ".join(page.get_text() for page in doc)
		assert "word0" in text and "word399" in text
		limit = (80 - 10 - 8) * 72.0 / 25.4 + 10 * 72.0 / 25.4
		for page in doc:
			for block in page.get_text("blocks"):
				if not block[4].startswith("Page "):
					assert block[3] <= limit + 1
	finally:
		doc.close()
