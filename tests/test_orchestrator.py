"""Tests for the agent loop state machine."""
from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

from studio.contracts.conversation import Attachment, Turn
from studio.core.llm_client import LLMResponse, ToolCall
from studio.core.orchestrator import (
    SKIPPED_FOR_UPLOAD,
    TOOL_EXECUTION_FAILED,
    AgentLoop,
    AgentPhase,
    build_user_turn,
    run_turn,
)
from studio.core.state_store import ProjectStore
from studio.models.project import ChecklistItemId, ChecklistStatus, Project, ProjectStage

OVERVIEW_ARGS = {"prompt": "Coffee teaser", "aspectRatio": "9:16", "targetDurationSeconds": 24}


def _llm(*responses: LLMResponse) -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(side_effect=list(responses))
    return llm


def _call(name: str, args: dict[str, Any], call_id: str, token: Any = None) -> ToolCall:
    return ToolCall(name=name, params=args, id=call_id, continuation_token=token)


def _responses(turn: Turn) -> dict[str, dict[str, Any]]:
    return {r.id: r.response for r in turn.tool_call_responses}


class TestBuildUserTurn:

    def test_text_only(self) -> None:
        turn = build_user_turn("hello")
        assert turn.role == "user"
        assert turn.text == "hello"

    def test_attachment_lines_and_inline_images(self) -> None:
        turn = build_user_turn("Here you go", [
            Attachment(type="image", name="ava.jpg", url="https://cdn.test/ava.jpg", mime_type="image/jpeg", data="AAA"),
            Attachment(type="audio", name="ava.mp3", url="https://cdn.test/ava.mp3", mime_type="audio/mpeg", data="BBB"),
        ])
        assert turn.text == (
            "Here you go\n\n"
            '[Uploaded image: "ava.jpg" - URL: https://cdn.test/ava.jpg]\n'
            '[Uploaded audio: "ava.mp3" - URL: https://cdn.test/ava.mp3]'
        )
        media = [p.inline_media for p in turn.parts if p.inline_media is not None]
        assert [m.mime_type for m in media] == ["image/jpeg"]

    def test_attachments_without_message(self) -> None:
        turn = build_user_turn("", [Attachment(type="image", name="a.png", url="https://cdn.test/a.png")])
        assert turn.text == '[Uploaded image: "a.png" - URL: https://cdn.test/a.png]'
        assert len(turn.parts) == 1


class TestAgentLoop:

    async def test_text_reply_ends_turn(self, project: Project) -> None:
        llm = _llm(LLMResponse(content="Hi! What is the video about?"))
        loop = AgentLoop(ProjectStore(project), llm, [Turn.user_text("hi")])

        assert await loop.step() == AgentPhase.AWAITING_PROVIDER
        assert await loop.step() == AgentPhase.DONE
        result = loop.result()
        assert result.final_text == "Hi! What is the video about?"
        assert result.iterations == 1
        assert result.history[-1].role == "model"

    async def test_system_prompt_carries_project_snapshot(self, project: Project) -> None:
        llm = _llm(LLMResponse(content="ok"))
        await AgentLoop(ProjectStore(project), llm, [Turn.user_text("hi")]).run()
        system_prompt = llm.generate.call_args.args[0]
        assert "## Current Project State" in system_prompt
        assert project.characters[0].id in system_prompt

    async def test_request_upload_pauses_after_one_provider_call(self) -> None:
        llm = _llm(LLMResponse(
            content="Saved. Please upload a voice sample.",
            tool_calls=[
                _call("save-overview", OVERVIEW_ARGS, "call_1", token=["blob"]),
                _call("request-upload", {"uploadType": "audio", "purpose": "voice sample", "targetId": "c1"}, "call_2"),
                _call("show-artifact", {"artifactType": "overview"}, "call_3"),
            ],
        ))
        loop = AgentLoop(ProjectStore(Project()), llm, [Turn.user_text("start")])
        result = await loop.run()

        assert llm.generate.await_count == 1
        assert result.phase == AgentPhase.AWAITING_UPLOAD
        assert result.pending_upload is not None
        assert result.pending_upload.to_dict() == {
            "toolCallId": "call_2", "uploadType": "audio", "purpose": "voice sample", "targetId": "c1",
        }
        assert result.continuation_token == ["blob"]

        responses = _responses(result.history[-1])
        assert set(responses) == {"call_1", "call_2", "call_3"}
        assert responses["call_1"]["success"] is True
        assert responses["call_3"] == SKIPPED_FOR_UPLOAD
        assert result.project.overview is not None
        assert result.project.current_artifact is None

    async def test_iteration_cap_returns_partial_turn(self, project: Project) -> None:
        responses = [
            LLMResponse(tool_calls=[_call("show-artifact", {"artifactType": "script"}, f"call_{i}")])
            for i in range(5)
        ]
        llm = _llm(*responses)
        result = await AgentLoop(ProjectStore(project), llm, [Turn.user_text("go")], max_iterations=2).run()

        assert result.capped
        assert result.phase == AgentPhase.DONE
        assert result.iterations == 2
        assert llm.generate.await_count == 2

    async def test_tool_exception_becomes_generic_error(self, project: Project) -> None:
        llm = _llm(
            LLMResponse(tool_calls=[_call("generate-script", {}, "call_1")]),
            LLMResponse(content="Something went wrong, retrying later."),
        )
        with patch("studio.core.orchestrator.execute", new_callable=AsyncMock, side_effect=RuntimeError("kaboom")):
            result = await AgentLoop(ProjectStore(project), llm, [Turn.user_text("go")]).run()

        tool_turn = result.history[-2]
        assert _responses(tool_turn)["call_1"] == TOOL_EXECUTION_FAILED
        assert result.phase == AgentPhase.DONE
        assert result.tool_results == []

    async def test_unparseable_arguments_answered_and_loop_continues(self, project: Project) -> None:
        bad = ToolCall(name="save-overview", id="call_1", parse_error="arguments are not valid JSON (Expecting value)")
        llm = _llm(
            LLMResponse(tool_calls=[bad]),
            LLMResponse(content="Let me fix that overview."),
        )
        result = await AgentLoop(ProjectStore(project), llm, [Turn.user_text("go")]).run()

        assert llm.generate.await_count == 2
        response = _responses(result.history[-2])["call_1"]
        assert response["success"] is False
        assert response["error"].startswith("Invalid arguments for save-overview:")
        assert result.phase == AgentPhase.DONE
        assert result.final_text == "Let me fix that overview."
        assert result.tool_results == []

    async def test_mutations_applied_before_next_call_reads(self, make_project, generation: MagicMock) -> None:
        project = make_project(overview=None)
        generation.generate_script.return_value = [{"type": "ambient", "description": "Steam"}]
        llm = _llm(
            LLMResponse(tool_calls=[
                _call("save-overview", OVERVIEW_ARGS, "call_1"),
                _call("generate-script", {}, "call_2"),
            ]),
            LLMResponse(content="Script ready."),
        )
        result = await AgentLoop(
            ProjectStore(project), llm, [Turn.user_text("go")], generation_client=generation,
        ).run()

        assert [name for name, _ in result.tool_results] == ["save-overview", "generate-script"]
        assert all(r.success for _, r in result.tool_results)
        assert len(result.project.scenes) == 1
        assert generation.generate_script.call_args.kwargs["overview"]["prompt"] == "Coffee teaser"

    async def test_business_failure_goes_back_to_model(self, make_project, make_character) -> None:
        project = make_project(characters=[make_character("Ava", complete=False)])
        llm = _llm(
            LLMResponse(tool_calls=[_call("generate-script", {}, "call_1")]),
            LLMResponse(content="Ava still needs a voice clone."),
        )
        result = await AgentLoop(ProjectStore(project), llm, [Turn.user_text("go")]).run()

        response = _responses(result.history[-2])["call_1"]
        assert response["success"] is False
        assert "Please complete all characters first." in response["error"]
        assert result.final_text == "Ava still needs a voice clone."

    async def test_continuation_token_echoed_on_next_request(self, project: Project) -> None:
        llm = _llm(
            LLMResponse(tool_calls=[_call("show-artifact", {"artifactType": "script"}, "call_1", token={"r": 1})]),
            LLMResponse(content="done"),
        )
        result = await AgentLoop(ProjectStore(project), llm, [Turn.user_text("go")]).run()

        second_history = llm.generate.call_args_list[1].args[1]
        model_turn = next(t for t in second_history if t.role == "model")
        assert model_turn.tool_call_requests[0].continuation_token == {"r": 1}
        assert result.continuation_token == {"r": 1}


class TestRunTurn:

    async def test_inputs_are_not_mutated(self, project: Project) -> None:
        llm = _llm(
            LLMResponse(tool_calls=[_call("save-brand", {"skipBrand": True}, "call_1")]),
            LLMResponse(content="Brand skipped."),
        )
        history: list[Turn] = []
        result = await run_turn("skip the brand", None, history, project, llm=llm, conversation_id="conv-1")

        assert history == []
        assert project.checklist[ChecklistItemId.BRAND] == ChecklistStatus.NOT_STARTED
        assert result.project.checklist[ChecklistItemId.BRAND] == ChecklistStatus.SKIPPED
        assert result.project.stage == ProjectStage.SCRIPT
        assert [t.role for t in result.history] == ["user", "model", "user", "model"]
        assert result.final_text == "Brand skipped."

    async def test_attachment_only_message(self, project: Project) -> None:
        llm = _llm(LLMResponse(content="Got it."))
        attachments = [Attachment(type="audio", name="v.mp3", url="https://cdn.test/v.mp3")]
        result = await run_turn("", attachments, [], project, llm=llm)
        assert "[Uploaded audio" in result.history[0].text
