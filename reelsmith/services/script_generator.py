"""Script Generator - plans the blocks of a content item with Gemini."""

import json
from typing import Any, Callable, Optional

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import ScriptGenerationFailed
from reelsmith.models.schemas import (
    Block,
    BlockStatus,
    ItemStatus,
    ScriptPlan,
    normalize_duration,
)
from reelsmith.storage.repository import RecordRepository, new_id

PLAN_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "blocks": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "type": {"type": "STRING", "enum": ["NARRATOR", "SHOWCASE"]},
                    "duration_target": {"type": "NUMBER", "enum": [4, 6, 8]},
                    "script": {"type": "STRING"},
                    "visual_prompt": {"type": "STRING"},
                    "user_instructions": {"type": "STRING"},
                },
                "required": ["type", "duration_target", "script", "user_instructions"],
            },
        },
    },
    "required": ["blocks"],
}


class ScriptGenerator:
    """Turns an idea and a user draft into a structured block plan."""

    def __init__(self, settings: Settings, logger: Any, client_factory: Optional[Callable[[str], Any]] = None):
        """
        Initialize the script generator.

        Args:
            settings: Application settings
            logger: Logger instance
            client_factory: Builds a client for an API key (``genai.Client`` by default)
        """
        self.settings = settings
        self.logger = logger
        self.client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._client = None

    def _get_client(self) -> Any:
        if self._client is None:
            keys = self.settings.google_key_pool()
            if not keys:
                raise ScriptGenerationFailed("No Google API key configured for script generation")
            self._client = self.client_factory(keys[0])
        return self._client

    def build_prompt(self, intent: str, draft: str) -> str:
        max_total = self.settings.script_max_total_seconds
        return f"""You are an expert director of organic, viral vertical short videos.
Create a video plan from the user's idea.

Idea: {intent}
User draft: "{draft}"

Block types:
- NARRATOR: the user talking to the camera.
- SHOWCASE: b-roll of the product or subject with a voice-over.

Constraints:
- Every block lasts exactly 4, 6 or 8 seconds.
- The whole video lasts at most {max_total} seconds.
- Script and instructions are written in {self.settings.script_language}.
- visual_prompt describes the shot for a video generation model, in English.

Structure:
1. Hook (NARRATOR): grab attention immediately.
2. Body (SHOWCASE): show the value or tell the story.
3. Call to action (NARRATOR): tell viewers what to do.

Return a JSON object with a single "blocks" key holding the list of blocks."""

    async def generate(self, intent: str, draft: str = "") -> ScriptPlan:
        """
        Ask the model for a block plan.

        Args:
            intent: Idea title
            draft: User draft of the script

        Returns:
            Validated ScriptPlan

        Raises:
            ScriptGenerationFailed: On API errors or unusable output
        """
        self.logger.info(f"Generating script plan for: {intent[:60]}")
        try:
            response = await self._get_client().aio.models.generate_content(
                model=self.settings.script_model,
                contents=self.build_prompt(intent, draft),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=PLAN_SCHEMA,
                ),
            )
        except (errors.APIError, httpx.TransportError) as e:
            raise ScriptGenerationFailed(f"Script model call failed: {e}") from e

        text = getattr(response, "text", None)
        if not text:
            raise ScriptGenerationFailed("Empty response from the script model")

        try:
            plan = ScriptPlan.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ScriptGenerationFailed(f"Script model returned an invalid plan: {e}") from e

        if not plan.blocks:
            raise ScriptGenerationFailed("Script model returned no blocks")
        self.logger.info(f"Script plan has {len(plan.blocks)} blocks")
        return plan


class ScriptPlanner:
    """Persists generated plans as the blocks of a content item."""

    def __init__(self, settings: Settings, logger: Any, repository: RecordRepository, generator: ScriptGenerator):
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.generator = generator

    async def plan_item(self, item_id: str, force: bool = False) -> list[Block]:
        """
        Plan (or re-plan) the blocks of an item.

        Existing blocks are returned untouched unless ``force`` is set; a new
        plan replaces every block of the item in one write and marks the
        item SCRIPTED.

        Args:
            item_id: Content item to plan
            force: Replace existing blocks

        Returns:
            The item's blocks, sorted by order

        Raises:
            EntityNotFound: If the item does not exist
            ScriptGenerationFailed: If no plan could be generated
            PreconditionViolation: If strict durations are on and the plan breaks them
        """
        item = self.repository.get_item(item_id)
        existing = self.repository.list_blocks(item_id)
        if existing and not force:
            self.logger.info(f"Item {item_id} already has {len(existing)} blocks; returning them")
            return existing

        plan = await self.generator.generate(item.title, item.script)
        blocks = [
            Block(
                id=new_id(),
                content_item_id=item_id,
                order=index + 1,
                type=planned.type,
                duration_target=normalize_duration(
                    planned.duration_target,
                    allowed=tuple(self.settings.allowed_block_durations),
                    default=self.settings.default_block_duration,
                    strict=self.settings.strict_block_durations,
                ),
                script=planned.script,
                visual_prompt=planned.visual_prompt,
                instructions=planned.user_instructions,
                status=BlockStatus.WAITING_INPUT,
            )
            for index, planned in enumerate(plan.blocks)
        ]

        stored = self.repository.replace_blocks(item_id, blocks)
        self.repository.update_item(item_id, status=ItemStatus.SCRIPTED)
        return stored
