import logging
from typing import Any, Callable

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel

from ..deps import get_gemini_factory
from ..errors import UpstreamError
from ..gemini_client import GeminiClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gemini"])


class GenerateRequest(BaseModel):
	# Any JSON value is accepted so a bad prompt answers 400 rather than 422
	prompt: Any = None


def require_prompt(prompt: Any) -> str:
	if not isinstance(prompt, str) or not prompt.strip():
		raise HTTPException(status_code=400, detail="Invalid or missing prompt.")
	return prompt


async def run_prompt(make_client: Callable[[], GeminiClient], prompt: str, failure: str) -> str:
	try:
		client = make_client()
		try:
			return await client.generate(prompt)
		finally:
			await client.aclose()
	except UpstreamError as e:
		logger.error("%s: %s", failure, e.message)
		raise HTTPException(status_code=500, detail=failure)


@router.post("/generate")
async def generate(req: GenerateRequest, make_client: Callable[[], GeminiClient] = Depends(get_gemini_factory)):
	prompt = require_prompt(req.prompt)
	text = await run_prompt(make_client, prompt, "Failed to generate text.")
	return {"text": text}


@router.post("/generate-worksheet")
async def generate_worksheet(req: GenerateRequest, make_client: Callable[[], GeminiClient] = Depends(get_gemini_factory)):
	prompt = require_prompt(req.prompt)
	result = await run_prompt(make_client, prompt, "Failed to generate worksheet.")
	return {"result": result}
