"""Configuration models for the glass compiler."""

from pathlib import Path
from typing import Literal, Optional

from decouple import config as env_config
from pydantic import BaseModel, ConfigDict, Field

GLASS_EXTENSION = ".glass"

# line width used when deciding to break generated lines
PRINT_WIDTH = env_config("GLASS_PRINT_WIDTH", default=100, cast=int)


class TranspilerConfig(BaseModel):
    """Options for a single compile invocation.

    Field names follow Python conventions; the camelCase names used by the
    editor extension are accepted as aliases.
    """

    workspace_folder: str = Field(default=".", alias="workspaceFolder")
    folder_path: str = Field(default=".", alias="folderPath")
    file_name: str = Field(alias="fileName")
    language: Literal["typescript", "javascript"] = Field(
        default_factory=lambda: env_config("GLASS_LANGUAGE", default="typescript"),
    )
    output_directory: str = Field(
        default_factory=lambda: env_config("GLASS_OUTPUT_DIR", default="src"),
        alias="outputDirectory",
    )
    # share one placeholder between byte-identical interpolations
    deduplicate: bool = False

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @property
    def is_typescript(self) -> bool:
        return self.language == "typescript"

    @classmethod
    def for_path(
        cls,
        path: Path,
        workspace_folder: Optional[Path] = None,
        language: Optional[str] = None,
        output_directory: Optional[Path] = None,
        deduplicate: bool = False,
    ) -> "TranspilerConfig":
        """Derive a configuration from the location of a ``.glass`` file."""
        path = Path(path)
        workspace = Path(workspace_folder) if workspace_folder else path.parent
        values = {
            "workspace_folder": str(workspace),
            "folder_path": str(path.parent),
            "file_name": path.stem,
            "deduplicate": deduplicate,
        }
        if language:
            values["language"] = language
        if output_directory:
            values["output_directory"] = str(output_directory)
        return cls(**values)


class RequestConfig(BaseModel):
    """Request settings extracted from a ``<Request />`` tag.

    Values are kept as raw source text; expression-valued attributes such as
    ``temperature={0.5}`` are passed on verbatim for the runtime to evaluate.
    """

    model: Optional[str] = None
    temperature: Optional[str] = None
    max_tokens: Optional[str] = Field(default=None, alias="maxTokens")
    stop_sequence: Optional[str] = Field(default=None, alias="stopSequence")
    on_response: Optional[str] = Field(default=None, alias="onResponse")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


REQUEST_ATTRIBUTES = ("model", "temperature", "maxTokens", "stopSequence", "onResponse")


def default_output_directory() -> Path:
    """Output directory used when none is given, relative to the working directory."""
    return Path(env_config("GLASS_OUTPUT_DIR", default="src"))


def output_file_name(language: str) -> str:
    return "glass.ts" if language == "typescript" else "glass.js"
