"""
Stage dependency validator.

A declarative table from operation to the ordered project-state conditions
it requires. Checks run before any external call; the first unmet condition
is reported with an actionable message and nothing is skipped silently.

Public API:
    check(operation, project, confirmed=...) -> StageViolation | None
    derive_stage(project) -> ProjectStage
    incomplete_characters_message(project, action) -> str
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from studio.models.project import ChecklistItemId, ChecklistStatus, Project, ProjectStage


class Operation(str, Enum):
    """Gated operations."""
    GENERATE_SCRIPT = "generate_script"
    PREPROCESS = "preprocess"
    GENERATE_THUMBNAILS = "generate_thumbnails"
    GENERATE_CLIPS = "generate_clips"
    ASSEMBLE = "assemble"


@dataclass(frozen=True)
class StageViolation:
    """The first unmet precondition for an operation."""

    condition: str
    message: str

    def __str__(self) -> str:
        return self.message


_Predicate = Callable[[Project], bool]
_Message = Callable[[Project], str]


@dataclass(frozen=True)
class _Requirement:
    condition: str
    holds: _Predicate
    message: _Message


# =============================================================================
# Predicates
# =============================================================================


def _has_overview(p: Project) -> bool:
    return p.overview is not None


def _has_aesthetic(p: Project) -> bool:
    return p.has_aesthetic_description


def _has_characters(p: Project) -> bool:
    return bool(p.characters)


def _characters_complete(p: Project) -> bool:
    return all(c.is_complete for c in p.characters)


def _has_scenes(p: Project) -> bool:
    return bool(p.scenes)


def _has_preprocessed_assets(p: Project) -> bool:
    return bool(p.locations) or bool(p.character_attires)


def _scenes_missing_thumbnails(p: Project) -> int:
    return sum(1 for s in p.scenes if not s.has_ready_thumbnail)


def _scenes_missing_clips(p: Project) -> int:
    return sum(1 for s in p.scenes if not s.has_ready_clip)


def incomplete_characters_message(project: Project, action: str) -> str:
    """Name every incomplete character and what each is missing."""
    issues = [
        f'"{c.name}" is missing: {", ".join(c.missing_parts())}'
        for c in project.characters
        if not c.is_complete
    ]
    return (
        f"All characters must be complete before {action}. "
        f"{'. '.join(issues)}. Please complete all characters first."
    )


def _fixed(message: str) -> _Message:
    return lambda _p: message


_NO_SCENES = "No scenes found. Generate a script first."


_REQUIREMENTS: dict[Operation, tuple[_Requirement, ...]] = {
    Operation.GENERATE_SCRIPT: (
        _Requirement(
            "overview",
            _has_overview,
            _fixed("Cannot generate script without a project overview. Please complete the Project Overview first."),
        ),
        _Requirement(
            "aesthetic",
            _has_aesthetic,
            _fixed(
                "Cannot generate script without an art style. "
                "Please complete the Art Style & Aesthetic section first."
            ),
        ),
        _Requirement(
            "characters",
            _has_characters,
            _fixed("Cannot generate script without any characters. Please add at least one character first."),
        ),
        _Requirement(
            "characters_complete",
            _characters_complete,
            lambda p: incomplete_characters_message(p, "generating the script"),
        ),
    ),
    Operation.PREPROCESS: (
        _Requirement("scenes", _has_scenes, _fixed(_NO_SCENES)),
        _Requirement("overview", _has_overview, _fixed("Project overview is required. Please complete it first.")),
        _Requirement("aesthetic", _has_aesthetic, _fixed("Art style is required. Please complete it first.")),
        _Requirement(
            "characters_complete",
            _characters_complete,
            lambda p: incomplete_characters_message(p, "preprocessing"),
        ),
    ),
    Operation.GENERATE_THUMBNAILS: (
        _Requirement("scenes", _has_scenes, _fixed(_NO_SCENES)),
        _Requirement("aesthetic", _has_aesthetic, _fixed("Art style is required for thumbnail generation.")),
        _Requirement(
            "preprocessed",
            _has_preprocessed_assets,
            _fixed(
                "Preprocessing must be complete before generating thumbnails. "
                "Run preprocess-script first."
            ),
        ),
    ),
    Operation.GENERATE_CLIPS: (
        _Requirement("scenes", _has_scenes, _fixed(_NO_SCENES)),
        _Requirement(
            "thumbnails_ready",
            lambda p: _scenes_missing_thumbnails(p) == 0,
            lambda p: (
                f"{_scenes_missing_thumbnails(p)} scene(s) don't have thumbnails ready. "
                "Generate all thumbnails first."
            ),
        ),
        _Requirement("aesthetic", _has_aesthetic, _fixed("Art style is required for video generation.")),
    ),
    Operation.ASSEMBLE: (
        _Requirement("scenes", _has_scenes, _fixed(_NO_SCENES)),
        _Requirement(
            "clips_ready",
            lambda p: _scenes_missing_clips(p) == 0,
            lambda p: (
                f"{_scenes_missing_clips(p)} scene(s) don't have videos ready. "
                "Generate all videos first."
            ),
        ),
    ),
}

_missing = set(Operation) - set(_REQUIREMENTS)
if _missing:
    raise RuntimeError(f"Operations without requirements: {sorted(o.value for o in _missing)}")


def check(
    operation: Operation,
    project: Project,
    *,
    confirmed: bool = True,
) -> Optional[StageViolation]:
    """Return the first unmet requirement for ``operation``, or None.

    ``confirmed`` is the preprocess finalization flag and is only consulted
    for ``Operation.PREPROCESS``, where it is the first condition.
    """
    if operation == Operation.PREPROCESS and not confirmed:
        return StageViolation(
            condition="finalized",
            message="Script must be finalized before preprocessing. Set confirmFinalized to true.",
        )

    for requirement in _REQUIREMENTS[operation]:
        if not requirement.holds(project):
            return StageViolation(condition=requirement.condition, message=requirement.message(project))
    return None


def requirements_for(operation: Operation) -> list[str]:
    """Condition names in evaluation order (for docs and tests)."""
    return [r.condition for r in _REQUIREMENTS[operation]]


# =============================================================================
# Stage derivation
# =============================================================================


def _brand_settled(p: Project) -> bool:
    return p.brand is not None or p.checklist.get(ChecklistItemId.BRAND) == ChecklistStatus.SKIPPED


_STAGE_COMPLETE: tuple[tuple[ProjectStage, _Predicate], ...] = (
    (ProjectStage.OVERVIEW, _has_overview),
    (ProjectStage.AESTHETIC, _has_aesthetic),
    (ProjectStage.BRAND, _brand_settled),
    (ProjectStage.CHARACTERS, lambda p: _has_characters(p) and _characters_complete(p)),
    (ProjectStage.SCRIPT, _has_scenes),
    (ProjectStage.PREPROCESSING, _has_preprocessed_assets),
    (ProjectStage.THUMBNAILS, lambda p: _scenes_missing_thumbnails(p) == 0),
    (ProjectStage.CLIPS, lambda p: _scenes_missing_clips(p) == 0),
    (ProjectStage.ASSEMBLY, lambda p: bool(p.final_output_url)),
)


def derive_stage(project: Project) -> ProjectStage:
    """The first stage whose completion condition does not yet hold."""
    for stage, complete in _STAGE_COMPLETE:
        if not complete(project):
            return stage
    return ProjectStage.COMPLETE
