"""OpenAI client for turning voice notes and free text into expense details."""

import json
import logging
from pathlib import Path

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from ..exceptions import ExpenseParseError, OpenAIAPIError
from ..models import ExpenseDetails
from ..parser import extract_json

logger = logging.getLogger(__name__)


class ExpenseExtractor:
    """Whisper transcription plus GPT-based expense extraction."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        transcription_model: str = "whisper-1",
    ):
        """Initialize the extractor."""
        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.transcription_model = transcription_model

    def transcribe_audio(self, audio_path: Path) -> str:
        """
        Transcribe an audio file to text.

        Args:
            audio_path: Path to the recording

        Returns:
            Transcribed text
        """
        try:
            with open(audio_path, "rb") as audio_file:
                transcription = self.client.audio.transcriptions.create(
                    model=self.transcription_model, file=audio_file
                )
        except OpenAIError as e:
            raise OpenAIAPIError(f"Transcription failed: {e}") from e

        logger.info(f"Transcribed {audio_path.name}: '{transcription.text}'")
        return transcription.text

    def parse_expense_text(self, text: str) -> ExpenseDetails:
        """
        Extract expense details from transcribed or typed text using GPT.

        Args:
            text: Free-text description of the expense

        Returns:
            Validated expense details

        Raises:
            OpenAIAPIError: If the API request fails
            ExpenseParseError: If the reply is not a usable expense
        """
        system_prompt = """You are an expense tracking assistant. Extract expense details from a short description of a shared expense.

Your response must be a JSON object with:
- amount: The amount paid, as a number (0 if not mentioned)
- description: A short description of what was paid for
- category: One of food, transport, entertainment, utilities, shopping, other
- split_with: Names of the people the expense is shared with, or an empty array

Example: "I paid 500 rupees for lunch with Raj and Priya" becomes
{"amount": 500, "description": "lunch", "category": "food", "split_with": ["raj", "priya"]}"""

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": f"Transcription: {text}"},
                ],
                temperature=0,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise OpenAIAPIError(f"Failed to parse expense with AI: {e}") from e

        if not response.choices:
            raise ExpenseParseError("No response from AI")

        content = extract_json((response.choices[0].message.content or "").strip())

        try:
            details = ExpenseDetails.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ExpenseParseError(f"Failed to parse AI response: {e}") from e

        logger.info(
            f"GPT extracted '{text}' -> {details.amount} {details.category} "
            f"(split with: {details.split_with or 'everyone'})"
        )

        return details
