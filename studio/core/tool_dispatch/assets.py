"""Handlers for preprocessing and per-asset regeneration (locations, attires)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from studio.core.entity_resolution import available_attires, available_locations, resolve_location
from studio.core.fanout import ItemResult, run_batch
from studio.core.stage_validator import Operation, check
from studio.core.tool_dispatch.context import ToolContext
from studio.models.project import AssetStatus, CharacterAttire, Location
from studio.models.tool_args import (
    ConfirmGenerateArgs,
    EditAttireAnglesArgs,
    EditLocationImageArgs,
    GenerateLocationImageArgs,
    PreprocessScriptArgs,
)
from studio.models.tools import MutationType, StateMutation, ToolResult
from studio.services.generation import GenerationProviderError

logger = logging.getLogger(__name__)

MAX_ATTIRE_ANGLES = 4
CONFIRM_GENERATE = "Must confirm generation by setting confirmGenerate to true."


# =============================================================================
# preprocess-script
# =============================================================================


async def preprocess_script(args: PreprocessScriptArgs, ctx: ToolContext) -> ToolResult:
    project = ctx.project
    violation = check(Operation.PREPROCESS, project, confirmed=args.confirm_finalized)
    if violation:
        return ToolResult.fail(violation.message)

    try:
        result = await ctx.generation.preprocess_script(
            scenes=[s.to_wire() for s in project.scenes],
            characters=[c.to_wire() for c in project.characters],
            aesthetic=project.aesthetic.to_wire() if project.aesthetic else None,
        )
        locations = [Location.model_validate(raw).to_wire() for raw in result["locations"]]
        attires = [CharacterAttire.model_validate(raw).to_wire() for raw in result["attires"]]
    except (GenerationProviderError, PydanticValidationError) as e:
        logger.error(f"{ctx.log_prefix} ❌ Preprocessing failed: {e}")
        return ToolResult.fail("Failed to preprocess script. Please try again.")

    scene_updates: list[StateMutation] = []
    for update in result["sceneUpdates"]:
        scene_id = update.get("sceneId") if isinstance(update, dict) else None
        if not scene_id or project.get_scene(scene_id) is None:
            logger.warning(f"{ctx.log_prefix} ⚠️ Preprocessing tagged unknown scene {scene_id!r}; skipped")
            continue
        scene_updates.append(StateMutation.entity_update(
            MutationType.UPDATE_SCENE,
            scene_id,
            location_id=update.get("locationId"),
            visual_character_ids=update.get("visualCharacterIds") or [],
            character_attire_ids=update.get("characterAttireIds") or {},
        ))

    return ToolResult.ok(
        data={
            "locations": locations,
            "attires": attires,
            "sceneUpdates": result["sceneUpdates"],
            "message": (
                f"Preprocessing complete: {len(locations)} locations, {len(attires)} attires identified"
            ),
        },
        state_update=StateMutation(type=MutationType.SET_LOCATIONS, payload=locations),
        additional_updates=[
            StateMutation(type=MutationType.SET_CHARACTER_ATTIRES, payload=attires),
            *scene_updates,
        ],
    )


# =============================================================================
# generate-preprocessing-assets (fan-out)
# =============================================================================


@dataclass(frozen=True)
class _AssetJob:
    """A pending location or attire; exactly one of the two is set."""
    sequence: int
    location: Optional[Location] = None
    attire: Optional[CharacterAttire] = None

    @property
    def id(self) -> str:
        entity = self.location or self.attire
        return entity.id if entity else ""

    @property
    def name(self) -> str:
        entity = self.location or self.attire
        return entity.name if entity else ""


async def generate_preprocessing_assets(args: ConfirmGenerateArgs, ctx: ToolContext) -> ToolResult:
    """One image per pending location and one angle set per pending attire, fanned out together.

    Pending means a location without an image or an attire without angles.
    The batch always reports success; each item carries its own status.
    """
    if not args.confirm_generate:
        return ToolResult.fail(CONFIRM_GENERATE)

    project = ctx.project
    pending_locations = [loc for loc in project.locations if not loc.reference_image_url]
    pending_attires = [a for a in project.character_attires if not a.reference_angles]

    if not pending_locations and not pending_attires:
        return ToolResult.ok(data={
            "message": "All assets already generated",
            "generatedLocations": [],
            "generatedAttires": [],
            "attempted": 0,
            "succeeded": 0,
            "failed": 0,
        })

    jobs = [
        _AssetJob(sequence=i, location=loc) for i, loc in enumerate(pending_locations)
    ] + [
        _AssetJob(sequence=len(pending_locations) + i, attire=a) for i, a in enumerate(pending_attires)
    ]
    logger.info(
        f"{ctx.log_prefix} 🎨 Generating preprocessing assets: "
        f"{len(pending_locations)} locations, {len(pending_attires)} attires"
    )

    async def _worker(job: _AssetJob) -> Any:
        if job.location is not None:
            return await ctx.generation.generate_location_image(
                location_name=job.location.name,
                location_description=job.location.description,
                aesthetic_description=ctx.aesthetic_description,
            )
        if job.attire is not None:
            attire = job.attire
            return await _attire_angles(ctx, attire, attire_description=f"{attire.name}: {attire.description}")
        raise ValueError("empty asset job")

    batch = await run_batch(
        jobs,
        _worker,
        key=lambda j: j.id,
        sequence=lambda j: j.sequence,
        label="preprocessing-assets",
        trace=ctx.trace,
    )

    jobs_by_sequence = {job.sequence: job for job in jobs}
    mutations: list[StateMutation] = []
    generated_locations: list[dict[str, Any]] = []
    generated_attires: list[dict[str, Any]] = []

    for item in batch.results:
        job = jobs_by_sequence[item.sequence]
        if job.location is not None:
            mutations.append(_location_mutation(item))
            if item.success:
                generated_locations.append({"id": job.id, "name": job.name, "imageUrl": item.payload})
        elif job.attire is not None:
            mutations.append(_attire_mutation(item))
            if item.success:
                generated_attires.append({
                    "id": job.id,
                    "name": job.name,
                    "characterName": project.character_name(job.attire.character_id),
                    "generatedAngles": item.payload,
                })

    return ToolResult.ok(
        data={
            "message": (
                f"Generated {len(generated_locations)} location images and "
                f"{len(generated_attires)} attire references"
            ),
            "generatedLocations": generated_locations,
            "generatedAttires": generated_attires,
            **batch.summary(),
        },
        additional_updates=mutations,
    )


def _location_mutation(item: ItemResult[Any]) -> StateMutation:
    if item.success:
        return StateMutation.entity_update(
            MutationType.UPDATE_LOCATION,
            item.id,
            reference_image_url=item.payload,
            status=AssetStatus.READY.value,
        )
    return StateMutation.entity_update(MutationType.UPDATE_LOCATION, item.id, status=AssetStatus.ERROR.value)


def _attire_mutation(item: ItemResult[Any]) -> StateMutation:
    if item.success:
        return StateMutation.entity_update(
            MutationType.UPDATE_CHARACTER_ATTIRE,
            item.id,
            reference_angles=item.payload,
            status=AssetStatus.READY.value,
        )
    return StateMutation.entity_update(
        MutationType.UPDATE_CHARACTER_ATTIRE, item.id, status=AssetStatus.ERROR.value,
    )


async def _attire_angles(ctx: ToolContext, attire: CharacterAttire, *, attire_description: str) -> list[str]:
    """Angles for the owning character wearing ``attire``; raises if there is nothing to work from."""
    character = ctx.project.get_character(attire.character_id)
    if character is None or not character.reference_photos:
        raise ValueError("Character not found or has no reference photos")
    angles = await ctx.generation.generate_angles(
        character_name=character.name,
        reference_photos=character.reference_photos,
        aesthetic_description=ctx.aesthetic_description,
        attire_description=attire_description,
    )
    if not angles:
        raise GenerationProviderError("/generate-angles", "No angles returned")
    return angles[:MAX_ATTIRE_ANGLES]


# =============================================================================
# Single-asset regeneration
# =============================================================================


def _location_not_found(ctx: ToolContext) -> ToolResult:
    return ToolResult.fail(f"Location not found. Available locations: {available_locations(ctx.project)}")


async def generate_location_image(args: GenerateLocationImageArgs, ctx: ToolContext) -> ToolResult:
    location = resolve_location(ctx.project, args.location_id)
    if location is None:
        return _location_not_found(ctx)

    logger.info(f"{ctx.log_prefix} 🏞️ Generating location image: {location.name}")
    try:
        image_url = await ctx.generation.generate_location_image(
            location_name=location.name,
            location_description=location.description,
            aesthetic_description=ctx.aesthetic_description,
        )
    except GenerationProviderError as e:
        logger.error(f"{ctx.log_prefix} ❌ Location image for {location.name} failed: {e}")
        return ToolResult.fail(f"Failed to generate location image: {e}")

    return ToolResult.ok(
        data={
            "locationId": location.id,
            "locationName": location.name,
            "imageUrl": image_url,
            "message": f"Generated image for {location.name}",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_LOCATION,
            location.id,
            reference_image_url=image_url,
            status=AssetStatus.READY.value,
        ),
    )


def _style_reference(ctx: ToolContext, reference_location_id: Optional[str]) -> Optional[Location]:
    if not reference_location_id:
        return None
    return ctx.project.get_location(reference_location_id)


async def edit_location_image(args: EditLocationImageArgs, ctx: ToolContext) -> ToolResult:
    location = resolve_location(ctx.project, args.location_id)
    if location is None:
        return _location_not_found(ctx)

    reference = _style_reference(ctx, args.reference_location_id)
    reference_text = ""
    if reference is not None and reference.reference_image_url:
        reference_text = (
            f'\n\nSTYLE REFERENCE: Match the visual style, color palette, and atmosphere of '
            f'"{reference.name}" ({reference.description}).'
        )

    try:
        image_url = await ctx.generation.generate_location_image(
            location_name=location.name,
            location_description=location.description,
            aesthetic_description=ctx.aesthetic_description,
            additional_instructions=args.instructions + reference_text,
            existing_image_url=location.reference_image_url,
        )
    except GenerationProviderError as e:
        logger.error(f"{ctx.log_prefix} ❌ Location edit for {location.name} failed: {e}")
        return ToolResult.fail("Failed to regenerate location image")

    return ToolResult.ok(
        data={
            "locationId": location.id,
            "locationName": location.name,
            "imageUrl": image_url,
            "instructions": args.instructions,
            "message": f"Regenerated image for {location.name}",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_LOCATION,
            location.id,
            reference_image_url=image_url,
            status=AssetStatus.READY.value,
        ),
    )


async def edit_attire_angles(args: EditAttireAnglesArgs, ctx: ToolContext) -> ToolResult:
    project = ctx.project
    attire = project.get_attire(args.attire_id)
    if attire is None:
        return ToolResult.fail(f"Attire not found. Available attires: {available_attires(project)}")

    character = project.get_character(attire.character_id)
    if character is None or not character.reference_photos:
        return ToolResult.fail("Character not found or has no reference photos")

    reference = _style_reference(ctx, args.reference_location_id)
    style = (
        f'. Style should match the visual aesthetic of "{reference.name}" location ({reference.description})'
        if reference is not None else ""
    )
    description = f"{attire.name}: {attire.description}{style}. ADDITIONAL: {args.instructions}"

    try:
        angles = await _attire_angles(ctx, attire, attire_description=description)
    except (GenerationProviderError, ValueError) as e:
        logger.error(f"{ctx.log_prefix} ❌ Attire edit for {attire.name} failed: {e}")
        return ToolResult.fail("Failed to regenerate attire angles")

    return ToolResult.ok(
        data={
            "attireId": attire.id,
            "attireName": attire.name,
            "characterName": character.name,
            "generatedAngles": angles,
            "instructions": args.instructions,
            "message": f"Regenerated angles for {character.name} - {attire.name}",
        },
        state_update=StateMutation.entity_update(
            MutationType.UPDATE_CHARACTER_ATTIRE,
            attire.id,
            reference_angles=angles,
            status=AssetStatus.READY.value,
        ),
    )
