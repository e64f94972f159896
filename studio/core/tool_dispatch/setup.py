"""Handlers for project setup: overview, aesthetic, brand and characters."""

from __future__ import annotations

import logging
from typing import Any

from studio.core.entity_resolution import resolve_character
from studio.core.tool_dispatch.context import ToolContext
from studio.models.project import Aesthetic, Brand, Character, CharacterStatus, Overview
from studio.models.tool_args import (
    AddCharacterArgs,
    CharacterRefArgs,
    SaveAestheticArgs,
    SaveBrandArgs,
    SaveOverviewArgs,
    UpdateCharacterArgs,
)
from studio.models.tools import MutationType, StateMutation, ToolResult
from studio.services.generation import GenerationProviderError

logger = logging.getLogger(__name__)

CHARACTER_NOT_FOUND = "Character not found. Please make sure the character is created first."


async def save_overview(args: SaveOverviewArgs, ctx: ToolContext) -> ToolResult:
    overview = Overview(
        prompt=args.prompt,
        aspect_ratio=args.aspect_ratio,
        target_duration_seconds=args.target_duration_seconds,
        additional_notes=args.additional_notes,
    ).to_wire()
    return ToolResult.ok(
        data=overview,
        state_update=StateMutation(type=MutationType.SET_OVERVIEW, payload=overview),
    )


async def save_aesthetic(args: SaveAestheticArgs, ctx: ToolContext) -> ToolResult:
    aesthetic = Aesthetic(
        title=args.title,
        description=args.description,
        style=args.style,
        reference_images=args.reference_image_urls,
    ).to_wire()
    return ToolResult.ok(
        data=aesthetic,
        state_update=StateMutation(type=MutationType.SET_AESTHETIC, payload=aesthetic),
    )


async def save_brand(args: SaveBrandArgs, ctx: ToolContext) -> ToolResult:
    if args.skip_brand:
        return ToolResult.ok(
            data=None,
            state_update=StateMutation(type=MutationType.SET_BRAND, payload=None),
        )

    brand = Brand(
        name=args.name,
        description=args.description,
        logo_url=args.logo_url or None,
        colors=args.colors,
    ).to_wire()
    return ToolResult.ok(
        data=brand,
        state_update=StateMutation(type=MutationType.SET_BRAND, payload=brand),
    )


async def add_character(args: AddCharacterArgs, ctx: ToolContext) -> ToolResult:
    character = Character(
        name=args.name,
        reference_photos=args.reference_photo_urls,
        voice_sample_url=args.voice_sample_url or None,
        status=CharacterStatus.DRAFT,
    )
    payload = character.to_wire()
    return ToolResult.ok(
        data={
            **payload,
            "message": (
                f'Character "{character.name}" created with ID: {character.id}. '
                "Use this ID for generate-character-angles and create-voice-clone."
            ),
        },
        state_update=StateMutation(type=MutationType.ADD_CHARACTER, payload=payload),
    )


async def update_character(args: UpdateCharacterArgs, ctx: ToolContext) -> ToolResult:
    character = ctx.project.get_character(args.character_id)
    if character is None:
        return ToolResult.fail(f"Character with ID {args.character_id} not found")

    updates: dict[str, Any] = {}
    if args.name:
        updates["name"] = args.name
    if args.reference_photo_urls:
        updates["reference_photos"] = args.reference_photo_urls
    if args.voice_sample_url:
        updates["voice_sample_url"] = args.voice_sample_url

    mutation = StateMutation.entity_update(MutationType.UPDATE_CHARACTER, character.id, **updates)
    return ToolResult.ok(
        data={"characterId": character.id, "updates": mutation.payload["updates"]},
        state_update=mutation,
    )


async def generate_character_angles(args: CharacterRefArgs, ctx: ToolContext) -> ToolResult:
    """Angles in the project's art style.

    A provider failure is not an error for the agent: the character is marked
    ``processing`` and the conversation carries on.
    """
    character = resolve_character(ctx.project, args.character_id)
    if character is None:
        return ToolResult.fail(CHARACTER_NOT_FOUND)
    if not character.reference_photos:
        return ToolResult.fail("Character has no reference photos. Please upload reference photos first.")
    if not ctx.project.has_aesthetic_description:
        return ToolResult.fail(
            "Cannot generate character angles without an art style. Please complete the Art Style & "
            "Aesthetic section first so the character angles match your visual style."
        )

    try:
        angles = await ctx.generation.generate_angles(
            character_id=character.id,
            character_name=character.name,
            reference_photos=character.reference_photos,
            aesthetic_description=ctx.aesthetic_description,
        )
    except GenerationProviderError as e:
        logger.warning(f"{ctx.log_prefix} ⚠️ Angle generation for {character.name} deferred: {e}")
        return ToolResult.ok(
            data={
                "characterId": character.id,
                "message": f"Angle generation started for {character.name}. Processing in background.",
            },
            state_update=StateMutation.entity_update(
                MutationType.UPDATE_CHARACTER, character.id, status=CharacterStatus.PROCESSING.value,
            ),
        )

    angles = angles[:4]
    status = CharacterStatus.READY if angles else CharacterStatus.PROCESSING
    return ToolResult.ok(
        data={
            "characterId": character.id,
            "generatedAngles": angles,
            "message": f"Generated {len(angles)} reference angles for {character.name}!",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_CHARACTER,
            character.id,
            generated_angles=angles,
            status=status.value,
        ),
    )


async def create_voice_clone(args: CharacterRefArgs, ctx: ToolContext) -> ToolResult:
    character = resolve_character(ctx.project, args.character_id)
    if character is None:
        return ToolResult.fail(CHARACTER_NOT_FOUND)
    if not character.generated_angles:
        return ToolResult.fail(
            f'Character "{character.name}" needs generated reference angles before voice cloning. '
            "Please generate the 4-angle references first and confirm you're happy with them."
        )
    if not character.voice_sample_url:
        return ToolResult.fail(
            f'Character "{character.name}" has no voice sample. Please upload a voice sample '
            "(at least 10 seconds of clear speech) first."
        )

    try:
        voice_clone_id = await ctx.generation.create_voice_clone(
            character_id=character.id,
            character_name=character.name,
            voice_sample_url=character.voice_sample_url,
        )
    except GenerationProviderError as e:
        logger.error(f"{ctx.log_prefix} ❌ Voice clone for {character.name} failed: {e}")
        return ToolResult.fail("Failed to create voice clone. Please try again.")

    if not voice_clone_id:
        return ToolResult.ok(data={
            "characterId": character.id,
            "message": f"Voice clone creation started for {character.name}. Processing...",
        })

    return ToolResult.ok(
        data={
            "characterId": character.id,
            "voiceCloneId": voice_clone_id,
            "message": f"Voice clone created for {character.name}!",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_CHARACTER, character.id, voice_clone_id=voice_clone_id,
        ),
    )
