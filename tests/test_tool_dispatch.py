"""Tests for tool dispatch and the tool handlers."""
from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from studio.core.state_store import ProjectStore
from studio.core.tool_dispatch import HANDLERS, execute
from studio.core.tool_names import ToolName
from studio.core.tools import ALL_TOOLS, build_tool_registry, pauses_loop
from studio.models.project import (
    AssetStatus,
    ChecklistItemId,
    ChecklistStatus,
    CharacterAttire,
    CharacterStatus,
    Location,
    Project,
)
from studio.models.tools import MutationType
from studio.services.assembly import AssemblyError, AssemblyResult, Stitcher
from studio.services.generation import GenerationProviderError


class TestRegistry:

    def test_every_tool_has_handler_schema_and_meta(self) -> None:
        schema_names = {t["function"]["name"] for t in ALL_TOOLS}
        registry = build_tool_registry()
        for tool in ToolName:
            assert tool in HANDLERS
            assert tool.value in schema_names
            assert tool.value in registry

    def test_only_request_upload_pauses(self) -> None:
        assert [t.value for t in ToolName if pauses_loop(t.value)] == ["request-upload"]

    def test_parse_accepts_snake_case(self) -> None:
        assert ToolName.parse("generate_all_clips") == ToolName.GENERATE_ALL_CLIPS
        assert ToolName.parse("nope") is None


class TestDispatch:

    async def test_unknown_tool_is_a_failed_result(self, project: Project) -> None:
        result = await execute("make-coffee", {}, project)
        assert not result.success
        assert result.error == "Unknown tool: make-coffee"

    async def test_invalid_args_name_the_field(self, project: Project) -> None:
        result = await execute("add-character", {"name": "Ava", "referencePhotoUrls": []}, project)
        assert not result.success
        assert result.error is not None
        assert result.error.startswith("Invalid arguments for add-character:")
        assert "referencePhotoUrls" in result.error

    async def test_handler_does_not_touch_project(self, project: Project) -> None:
        before = project.model_dump()
        result = await execute(
            "save-overview",
            {"prompt": "New idea", "aspectRatio": "9:16", "targetDurationSeconds": 15},
            project,
        )
        assert result.success
        assert project.model_dump() == before
        assert result.state_update is not None
        assert result.state_update.type == MutationType.SET_OVERVIEW

    async def test_to_wire_shape(self, project: Project) -> None:
        result = await execute("save-brand", {"skipBrand": True}, project)
        wire = result.to_wire()
        assert wire["success"] is True
        assert wire["stateUpdates"] == {"type": "setBrand", "payload": None}
        assert "error" not in wire
        assert "additionalUpdates" not in wire


class TestSetupTools:

    async def test_add_character_returns_id_in_message(self, project: Project) -> None:
        result = await execute(
            "add-character",
            {"name": "Ben", "referencePhotoUrls": ["https://cdn.test/ben.jpg"]},
            project,
        )
        assert result.success
        character_id = result.data["id"]
        assert character_id in result.data["message"]

        store = ProjectStore(project)
        store.apply_result(result)
        added = store.project.get_character(character_id)
        assert added is not None
        assert added.status == CharacterStatus.DRAFT

    async def test_angles_provider_error_defers_to_processing(
        self, make_project, make_character, generation: MagicMock
    ) -> None:
        ava = make_character("Ava", complete=False)
        project = make_project(characters=[ava])
        generation.generate_angles.side_effect = GenerationProviderError("/generate-angles", "busy")

        result = await execute(
            "generate-character-angles", {"characterId": "ava-ID-placeholder"}, project,
            generation_client=generation,
        )
        assert result.success
        assert "Processing in background" in result.data["message"]
        assert result.state_update is not None
        assert result.state_update.payload == {"id": ava.id, "updates": {"status": "processing"}}

    async def test_angles_need_aesthetic(self, make_project, make_character, generation: MagicMock) -> None:
        project = make_project(aesthetic=None, characters=[make_character(complete=False)])
        result = await execute("generate-character-angles", {"characterId": ""}, project, generation_client=generation)
        assert not result.success
        assert "art style" in (result.error or "")
        generation.generate_angles.assert_not_called()

    async def test_angles_capped_at_four(self, make_project, make_character, generation: MagicMock) -> None:
        ava = make_character("Ava", complete=False)
        project = make_project(characters=[ava])
        generation.generate_angles.return_value = [f"a{i}" for i in range(6)]
        result = await execute("generate-character-angles", {"characterId": ava.id}, project,
                               generation_client=generation)
        assert result.data["generatedAngles"] == ["a0", "a1", "a2", "a3"]

    async def test_angles_for_hyphenated_name_go_to_that_character(
        self, make_project, make_character, generation: MagicMock
    ) -> None:
        jean = make_character("Jean-Luc", complete=False, created_at=1)
        ava = make_character("Ava", complete=False, created_at=2)
        project = make_project(characters=[jean, ava])
        generation.generate_angles.return_value = ["a0"]
        result = await execute("generate-character-angles", {"characterId": "Jean-Luc"}, project,
                               generation_client=generation)
        assert result.success
        assert result.state_update is not None
        assert result.state_update.payload["id"] == jean.id

    async def test_voice_clone_requires_angles(self, make_project, make_character, generation: MagicMock) -> None:
        project = make_project(characters=[make_character("Ava", complete=False)])
        result = await execute("create-voice-clone", {"characterId": "Ava"}, project, generation_client=generation)
        assert not result.success
        assert "needs generated reference angles" in (result.error or "")
        generation.create_voice_clone.assert_not_called()

    async def test_voice_clone_sets_id(self, make_project, make_character, generation: MagicMock) -> None:
        ava = make_character("Ava", complete=False, generated_angles=["a"])
        project = make_project(characters=[ava])
        generation.create_voice_clone.return_value = "voice-123"
        result = await execute("create-voice-clone", {"characterId": ava.id}, project, generation_client=generation)
        store = ProjectStore(project)
        store.apply_result(result)
        updated = store.project.get_character(ava.id)
        assert updated is not None and updated.is_complete


class TestScriptTools:

    async def test_generate_script_blocked_by_incomplete_character(
        self, make_project, make_character, generation: MagicMock
    ) -> None:
        project = make_project(characters=[make_character("Ava", complete=False)])
        result = await execute("generate-script", {}, project, generation_client=generation)
        assert not result.success
        assert result.error == (
            'All characters must be complete before generating the script. '
            '"Ava" is missing: reference angles, voice clone. Please complete all characters first.'
        )
        generation.generate_script.assert_not_called()

    async def test_generate_script_indexes_scenes(self, project: Project, generation: MagicMock) -> None:
        generation.generate_script.return_value = [
            {"type": "ambient", "description": "Steam rises"},
            {"type": "infographic", "description": "Opening hours", "duration": 4},
        ]
        result = await execute("generate-script", {}, project, generation_client=generation)
        assert result.success
        scenes = result.data["scenes"]
        assert [s["index"] for s in scenes] == [0, 1]
        assert all(s["id"] for s in scenes)

    async def test_generate_script_rejects_bad_scene(self, project: Project, generation: MagicMock) -> None:
        generation.generate_script.return_value = [{"type": "ambient", "duration": 30}]
        result = await execute("generate-script", {}, project, generation_client=generation)
        assert not result.success
        assert result.error == "Failed to generate script. Please try again."

    async def test_update_script_reports_only_changed_fields(self, make_project, make_scenes) -> None:
        project = make_project()
        project.scenes = make_scenes(project, 2)
        first, second = project.scenes
        result = await execute(
            "update-script",
            {"updates": [
                {"sceneId": first.id, "description": "Scene 1 description", "dialogue": "Fresh line"},
                {"sceneId": second.id, "includeBrandLogo": True},
            ]},
            project,
        )
        assert result.success
        assert result.data["diffs"] == [
            {"sceneNumber": 1, "field": "dialogue", "oldValue": "Line 1", "newValue": "Fresh line"},
            {"sceneNumber": 2, "field": "includeBrandLogo", "oldValue": "false", "newValue": "true"},
        ]

        store = ProjectStore(project)
        store.apply_result(result)
        assert store.project.scenes[0].script is not None
        assert store.project.scenes[0].script.dialogue == "Fresh line"
        assert store.project.scenes[1].include_brand_logo is True

    async def test_update_script_counts_only_known_scenes(self, make_project, make_scenes) -> None:
        project = make_project()
        project.scenes = make_scenes(project, 2)
        first = project.scenes[0]
        result = await execute(
            "update-script",
            {"updates": [
                {"sceneId": first.id, "description": "New opening"},
                {"sceneId": "ghost", "description": "Never applied"},
            ]},
            project,
        )
        assert result.success
        assert result.data["message"] == "Updated 1 field(s) across 1 scene(s); skipped unknown scene IDs: ghost"
        assert result.data["unknownSceneIds"] == ["ghost"]
        assert [u["sceneId"] for u in result.data["updates"]] == [first.id]

    async def test_update_script_all_unknown_fails(self, project: Project) -> None:
        result = await execute("update-script", {"updates": [{"sceneId": "ghost", "description": "x"}]}, project)
        assert not result.success
        assert result.error == "No matching scenes. Unknown scene IDs: ghost"

    async def test_edit_scene_dialogue_without_speaker(self, make_project, make_scenes) -> None:
        project = make_project()
        project.scenes = make_scenes(project, 1, script=None)
        result = await execute(
            "edit-scene", {"sceneNumber": 1, "field": "dialogue", "newValue": "Hi"}, project,
        )
        assert not result.success
        assert result.error == "Cannot set dialogue without a speaker. Set the speaker first."

    async def test_edit_scene_out_of_range(self, project: Project) -> None:
        result = await execute("edit-scene", {"sceneNumber": 4, "field": "description", "newValue": "x"}, project)
        assert result.error == "Scene not found. Scene 4 does not exist."

    async def test_add_then_remove_scene(self, project: Project) -> None:
        store = ProjectStore(project)
        added = await execute("add-scene", {"type": "ambient", "description": "Sunrise"}, store.project)
        store.apply_result(added)
        scene_id = added.data["id"]
        assert store.project.get_scene(scene_id) is not None

        removed = await execute("remove-scene", {"sceneId": scene_id}, store.project)
        store.apply_result(removed)
        assert store.project.get_scene(scene_id) is None


class TestAssetTools:

    async def test_preprocess_requires_confirmation(self, make_project, make_scenes, generation: MagicMock) -> None:
        project = make_project()
        project.scenes = make_scenes(project, 1)
        result = await execute("preprocess-script", {}, project, generation_client=generation)
        assert result.error == "Script must be finalized before preprocessing. Set confirmFinalized to true."
        generation.preprocess_script.assert_not_called()

    async def test_preprocess_tags_known_scenes_only(self, make_project, make_scenes, generation: MagicMock) -> None:
        project = make_project()
        project.scenes = make_scenes(project, 1)
        scene = project.scenes[0]
        generation.preprocess_script.return_value = {
            "locations": [{"id": "loc-1", "name": "Cafe", "description": "Sunny"}],
            "attires": [{"id": "att-1", "characterId": project.characters[0].id, "name": "Apron"}],
            "sceneUpdates": [
                {"sceneId": scene.id, "locationId": "loc-1", "visualCharacterIds": [project.characters[0].id]},
                {"sceneId": "ghost", "locationId": "loc-1"},
            ],
        }
        result = await execute("preprocess-script", {"confirmFinalized": True}, project, generation_client=generation)
        assert result.success

        store = ProjectStore(project)
        store.apply_result(result)
        assert [loc.id for loc in store.project.locations] == ["loc-1"]
        assert store.project.character_attires[0].name == "Apron"
        assert store.project.scenes[0].location_id == "loc-1"

    async def test_preprocessing_assets_partial_failure(self, project: Project, generation: MagicMock) -> None:
        project.locations = [Location(name=name) for name in ("Cafe", "Park", "Street")]

        async def _image(*, location_name: str, **_: Any) -> str:
            if location_name == "Park":
                raise GenerationProviderError("/generate-location-image", "Generation failed: 500", status_code=500)
            return f"https://cdn.test/{location_name.lower()}.png"

        generation.generate_location_image.side_effect = _image
        result = await execute(
            "generate-preprocessing-assets", {"confirmGenerate": True}, project, generation_client=generation,
        )
        assert result.success
        assert (result.data["attempted"], result.data["succeeded"], result.data["failed"]) == (3, 2, 1)
        assert [loc["name"] for loc in result.data["generatedLocations"]] == ["Cafe", "Street"]

        store = ProjectStore(project)
        store.apply_result(result)
        by_name = {loc.name: loc for loc in store.project.locations}
        assert by_name["Park"].status == AssetStatus.ERROR
        assert by_name["Park"].reference_image_url is None
        assert by_name["Cafe"].status == AssetStatus.READY
        assert by_name["Street"].reference_image_url == "https://cdn.test/street.png"

    async def test_preprocessing_assets_location_and_attire_sharing_an_id(
        self, project: Project, generation: MagicMock
    ) -> None:
        character = project.characters[0]
        project.locations = [Location(id="1", name="Cafe")]
        project.character_attires = [CharacterAttire(id="1", character_id=character.id, name="Apron")]
        generation.generate_location_image.return_value = "https://cdn.test/cafe.png"
        generation.generate_angles.return_value = ["https://cdn.test/apron-1.png", "https://cdn.test/apron-2.png"]

        result = await execute(
            "generate-preprocessing-assets", {"confirmGenerate": True}, project, generation_client=generation,
        )
        assert result.success
        assert (result.data["attempted"], result.data["succeeded"]) == (2, 2)

        store = ProjectStore(project)
        store.apply_result(result)
        assert store.project.locations[0].reference_image_url == "https://cdn.test/cafe.png"
        assert store.project.locations[0].status == AssetStatus.READY
        assert store.project.character_attires[0].reference_angles == [
            "https://cdn.test/apron-1.png", "https://cdn.test/apron-2.png",
        ]

    async def test_preprocessing_assets_needs_confirmation(self, project: Project, generation: MagicMock) -> None:
        result = await execute("generate-preprocessing-assets", {}, project, generation_client=generation)
        assert result.error == "Must confirm generation by setting confirmGenerate to true."

    async def test_preprocessing_assets_nothing_pending(self, make_ready_project, generation: MagicMock) -> None:
        result = await execute(
            "generate-preprocessing-assets", {"confirmGenerate": True}, make_ready_project(1),
            generation_client=generation,
        )
        assert result.success
        assert result.data["attempted"] == 0
        generation.generate_location_image.assert_not_called()

    async def test_location_not_found_lists_available(self, make_ready_project) -> None:
        project = make_ready_project(1)
        result = await execute("generate-location-image", {"locationId": "Beach"}, project)
        assert not result.success
        assert f'"Cafe" (id: {project.locations[0].id})' in (result.error or "")

    async def test_location_resolved_by_name(self, make_ready_project, generation: MagicMock) -> None:
        project = make_ready_project(1)
        generation.generate_location_image.return_value = "https://cdn.test/new.png"
        result = await execute("generate-location-image", {"locationId": "cafe"}, project, generation_client=generation)
        assert result.success
        assert result.data["locationId"] == project.locations[0].id


class TestMediaTools:

    async def test_thumbnails_partial_failure_marks_error(self, make_ready_project, generation: MagicMock) -> None:
        project = make_ready_project(3)
        for scene in project.scenes:
            scene.thumbnail_url = None
            scene.thumbnail_status = AssetStatus.PENDING
        failing = project.scenes[1].id

        async def _thumb(payload: dict[str, Any]) -> str:
            if payload["sceneId"] == failing:
                raise GenerationProviderError("/generate-thumbnail", "boom")
            return f"https://cdn.test/{payload['sceneId']}.png"

        generation.generate_thumbnail.side_effect = _thumb
        result = await execute("generate-all-thumbnails", {"confirmGenerate": True}, project,
                               generation_client=generation)
        assert result.success
        assert result.data["totalGenerated"] == 2
        assert result.data["failed"] == 1

        store = ProjectStore(project)
        store.apply_result(result)
        statuses = [s.thumbnail_status for s in store.project.scenes]
        assert statuses == [AssetStatus.READY, AssetStatus.ERROR, AssetStatus.READY]

    async def test_thumbnail_payload_carries_render_context(self, make_ready_project, generation: MagicMock) -> None:
        project = make_ready_project(1)
        generation.generate_thumbnail.return_value = "https://cdn.test/t.png"
        await execute("generate-all-thumbnails", {"confirmGenerate": True}, project, generation_client=generation)
        payload = generation.generate_thumbnail.call_args.args[0]
        assert payload["locationImageUrl"] == "https://cdn.test/cafe.png"
        assert payload["speakerName"] == "Ava"
        assert payload["charactersInScene"] == [
            {"name": "Ava", "attireName": "default", "attireAngles": project.characters[0].generated_angles},
        ]

    async def test_clips_blocked_until_thumbnails_ready(self, make_ready_project, generation: MagicMock) -> None:
        project = make_ready_project(2)
        project.scenes[0].thumbnail_status = AssetStatus.ERROR
        result = await execute("generate-all-clips", {"confirmGenerate": True}, project, generation_client=generation)
        assert not result.success
        assert result.error == "1 scene(s) don't have thumbnails ready. Generate all thumbnails first."
        generation.generate_video.assert_not_called()

    async def test_clip_payload_includes_thumbnail(self, make_ready_project, generation: MagicMock) -> None:
        project = make_ready_project(1)
        generation.generate_video.return_value = "https://cdn.test/c.mp4"
        result = await execute("generate-all-clips", {"confirmGenerate": True}, project, generation_client=generation)
        assert result.success
        payload = generation.generate_video.call_args.args[0]
        assert payload["thumbnailUrl"] == "https://cdn.test/thumb-0.png"
        assert "locationImageUrl" not in payload

    async def test_edit_thumbnail_bounds(self, make_ready_project) -> None:
        project = make_ready_project(2)
        result = await execute("edit-thumbnail", {"sceneNumber": 3, "instructions": "brighter"}, project)
        assert result.error == "Scene 3 not found. There are only 2 scenes."
        result = await execute("edit-thumbnail", {"sceneNumber": 0, "instructions": "brighter"}, project)
        assert result.error == "Invalid scene number. Must be 1 or greater."


def _stitcher_mock(url: str = "https://cdn.test/final.mp4") -> MagicMock:
    stitcher = MagicMock(spec=Stitcher)
    stitcher.assemble = AsyncMock(return_value=AssemblyResult(
        url=url, file_name="A-coffee-shop-launch-teaser-final.mp4", total_scenes=2, total_duration=16,
        aspect_ratio="16:9",
    ))
    return stitcher


class TestAssemble:

    async def test_requires_confirm_stitch(self, make_ready_project) -> None:
        stitcher = _stitcher_mock()
        result = await execute("assemble-final-output", {}, make_ready_project(2, clips=True), stitcher=stitcher)
        assert result.error == "Must confirm by setting confirmStitch to true."
        stitcher.assemble.assert_not_called()

    async def test_never_stitches_without_all_clips(self, make_ready_project) -> None:
        project = make_ready_project(2, clips=True)
        project.scenes[1].clip_url = None
        stitcher = _stitcher_mock()
        result = await execute("assemble-final-output", {"confirmStitch": True}, project, stitcher=stitcher)
        assert not result.success
        assert result.error == "1 scene(s) don't have videos ready. Generate all videos first."
        stitcher.assemble.assert_not_called()

    async def test_stitches_in_scene_index_order(self, make_ready_project) -> None:
        project = make_ready_project(2, clips=True)
        project.scenes[0].index, project.scenes[1].index = 1, 0
        stitcher = _stitcher_mock()
        result = await execute("assemble-final-output", {"confirmStitch": True}, project, stitcher=stitcher)
        assert result.success
        urls = stitcher.assemble.call_args.args[0]
        assert urls == ["https://cdn.test/clip-1.mp4", "https://cdn.test/clip-0.mp4"]
        assert stitcher.assemble.call_args.kwargs["project_name"] == "A coffee shop launch teaser"
        assert result.data["finalOutput"]["totalDuration"] == 16

        store = ProjectStore(project)
        store.apply_result(result)
        assert store.project.final_output_url == "https://cdn.test/final.mp4"

    async def test_reassembly_needs_explicit_flag(self, make_ready_project) -> None:
        project = make_ready_project(2, clips=True)
        project.final_output_url = "https://cdn.test/old.mp4"
        stitcher = _stitcher_mock()
        result = await execute("assemble-final-output", {"confirmStitch": True}, project, stitcher=stitcher)
        assert not result.success
        assert "confirmReassemble" in (result.error or "")

        result = await execute(
            "assemble-final-output", {"confirmStitch": True, "confirmReassemble": True}, project, stitcher=stitcher,
        )
        assert result.success

    async def test_assembly_error_is_failed_result(self, make_ready_project) -> None:
        stitcher = _stitcher_mock()
        stitcher.assemble.side_effect = AssemblyError("Failed to fetch video 2: 404")
        result = await execute(
            "assemble-final-output", {"confirmStitch": True}, make_ready_project(2, clips=True), stitcher=stitcher,
        )
        assert not result.success
        assert result.error == "Failed to fetch video 2: 404"
        assert result.mutations == []


class TestSessionTools:

    async def test_checklist_item(self, project: Project) -> None:
        result = await execute("update-checklist-item", {"itemId": "brand", "status": "skipped"}, project)
        store = ProjectStore(project)
        store.apply_result(result)
        assert store.project.checklist[ChecklistItemId.BRAND] == ChecklistStatus.SKIPPED

    async def test_show_artifact(self, project: Project) -> None:
        result = await execute("show-artifact", {"artifactType": "script"}, project)
        assert result.state_update is not None
        assert result.state_update.payload == {"type": "script", "id": None}

    @pytest.mark.parametrize("upload_type", ["image", "audio", "document"])
    async def test_request_upload_echoes(self, project: Project, upload_type: str) -> None:
        result = await execute(
            "request-upload", {"uploadType": upload_type, "purpose": "voice sample for Ava"}, project,
        )
        assert result.success
        assert result.data["uploadType"] == upload_type
        assert result.mutations == []
