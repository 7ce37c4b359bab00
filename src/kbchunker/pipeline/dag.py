from typing import NamedTuple


class Stage(NamedTuple):
    name: str
    progress: int
    label: str


# Reported to on_progress when each stage begins
STAGES: list[Stage] = [
    Stage("parse", 10, "Parsing document with structure preservation"),
    Stage("filter", 25, "Filtering junk content"),
    Stage("structure", 40, "Extracting headings and detecting sections"),
    Stage("chunk", 60, "Generating quality-aware chunks"),
    Stage("classify", 75, "Classifying and enhancing content"),
    Stage("validate", 85, "Validating chunk quality"),
    Stage("store", 95, "Storing with enhanced metadata"),
]

COMPLETED = Stage("complete", 100, "Completed")

STAGE_BY_NAME: dict[str, Stage] = {s.name: s for s in STAGES}


def checkpoints() -> list[int]:
    """Progress percentages in emission order, ending at 100."""
    return [s.progress for s in STAGES] + [COMPLETED.progress]
