from __future__ import annotations


EMBED_STAGES = {
    "resolve": "resolve absolute path",
    "exists": "check file existence",
    "import": "embedding file",
}


class ReportError(Exception):
    pass


class InputError(ReportError):
    """The accounting export cannot be read. Aborts before any page."""


class OutputError(ReportError):
    """The finished report cannot be written."""


class EmbedError(ReportError):
    """A source document could not be embedded into one page."""

    def __init__(self, stage: str, cause: object) -> None:
        if stage not in EMBED_STAGES:
            raise ValueError(f"Unknown embed stage: {stage}")
        self.stage = stage
        self.cause = str(cause)
        super().__init__(f"Error occurred during {EMBED_STAGES[stage]}: {self.cause}.")


class ImportPanic(EmbedError):
    """Unexpected failure inside the page import, reported as an import error."""

    def __init__(self, cause: object) -> None:
        super().__init__(
            "import",
            f"{cause!r}, try to reexport the file in order to fix it",
        )
