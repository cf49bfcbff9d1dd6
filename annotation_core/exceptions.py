#!/usr/bin/env python
#
# Annotation Ingest - Custom Exceptions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Custom exception classes for annotation ingestion.

Each exception carries diagnostic information that can be used for
troubleshooting and bug reporting.

Exception Hierarchy:
    AnnotationError (base)
    ├── StructuralError (whole-batch failures: bad JSON root, missing CSV
    │                    columns, wrong file count or extension)
    ├── EmptyResultError (no annotation accepted across the batch)
    ├── RecordSkipped (a single record was rejected; never escapes ingestion)
    ├── AnnotationValidationError (parameter/input validation)
    └── AnnotationConfigError (configuration errors)

Example:
    >>> try:
    ...     ingest("coco", files, images, registry, config=IngestionConfig(strict=True))
    ... except StructuralError as e:
    ...     print(e.get_diagnostic_info())
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from importlib import resources
from string import Template
from typing import Any, Dict, List, Optional

from .i18n import DEFAULT_LOCALE, get_message
from .schema import VERSION

# Key dependencies to include in diagnostic reports
_KEY_DEPENDENCIES = [
    "numpy",
    "PyYAML",
]


def _get_package_versions() -> Dict[str, str]:
    """Collect versions of key dependencies.

    Returns:
        Dictionary mapping package names to version strings.
        Returns "not installed" for missing packages.
    """
    from importlib.metadata import PackageNotFoundError, version

    versions: Dict[str, str] = {}
    for pkg in _KEY_DEPENDENCIES:
        try:
            versions[pkg] = version(pkg)
        except PackageNotFoundError:
            versions[pkg] = "not installed"
    return versions


@lru_cache(maxsize=1)
def _load_diagnostic_template() -> Template:
    template_path = resources.files(__package__).joinpath(
        "templates", "diagnostic_report.md"
    )
    return Template(template_path.read_text(encoding="utf-8"))


def _format_section(title: str, lines: List[str]) -> str:
    if not lines:
        return ""
    section_lines = [title, "", "```"]
    section_lines.extend(lines)
    section_lines.extend(["```", ""])
    return "\n".join(section_lines)


def _render_diagnostic_report(
    diagnostic: "DiagnosticInfo", *, locale: str, include_header: bool
) -> str:
    general_section = _format_section(
        get_message("ui.diagnostic.section.general", locale=locale),
        [
            f"version: {diagnostic.version}",
            f"python: {diagnostic.python_version}",
            f"platform: {diagnostic.platform}",
            f"timestamp: {diagnostic.timestamp}",
        ],
    )

    error_lines = [
        f"error_type: {diagnostic.error_type}",
        f"error_message: {diagnostic.error_message}",
    ]
    if diagnostic.filepath:
        error_lines.append(f"file: {diagnostic.filepath}")
    if diagnostic.original_error_type:
        error_lines.append(f"original_error_type: {diagnostic.original_error_type}")
    if diagnostic.original_error_message:
        error_lines.append(
            f"original_error_message: {diagnostic.original_error_message}"
        )
    error_section = _format_section(
        get_message("ui.diagnostic.section.error", locale=locale), error_lines
    )

    context_section = _format_section(
        get_message("ui.diagnostic.section.context", locale=locale),
        [f"{key}: {value}" for key, value in diagnostic.context.items()],
    )
    dependencies_section = _format_section(
        get_message("ui.diagnostic.section.dependencies", locale=locale),
        [f"{pkg}: {ver}" for pkg, ver in sorted(diagnostic.dependencies.items())],
    )

    report_header = ""
    if include_header:
        report_header = "\n".join(
            [
                get_message("ui.diagnostic.report.title", locale=locale),
                "",
                get_message("ui.diagnostic.report.attach", locale=locale),
                "",
                "---",
                "",
            ]
        )

    return _load_diagnostic_template().safe_substitute(
        report_header=report_header,
        general_section=general_section,
        error_section=error_section,
        context_section=context_section,
        dependencies_section=dependencies_section,
    )


@dataclass
class DiagnosticInfo:
    """Structured diagnostic information for error reporting.

    Attributes:
        version: annotation_core version string.
        python_version: Python interpreter version.
        platform: Operating system and architecture.
        timestamp: ISO format timestamp when the error occurred.
        filepath: Name of the annotation file involved (if applicable).
        error_type: Name of the exception class.
        error_message: The error message.
        original_error_type: Type of the wrapped original exception.
        original_error_message: Message from the wrapped original exception.
        context: Additional context-specific information.
        dependencies: Installed versions of key dependencies.
    """

    version: str = ""
    python_version: str = ""
    platform: str = ""
    timestamp: str = ""
    filepath: Optional[str] = None
    error_type: str = ""
    error_message: str = ""
    original_error_type: Optional[str] = None
    original_error_message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "python_version": self.python_version,
            "platform": self.platform,
            "timestamp": self.timestamp,
            "filepath": self.filepath,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "original_error_type": self.original_error_type,
            "original_error_message": self.original_error_message,
            "context": self.context,
            "dependencies": self.dependencies,
        }

    def format_for_issue(
        self, *, locale: str = DEFAULT_LOCALE, include_header: bool = False
    ) -> str:
        """Format diagnostic info as a Markdown report."""
        return _render_diagnostic_report(
            self, locale=locale, include_header=include_header
        )


def _build_diagnostic(
    *,
    error_type: str,
    error_message: str,
    filepath: Optional[str],
    original_error: Optional[BaseException],
    context: Optional[Dict[str, Any]],
) -> DiagnosticInfo:
    return DiagnosticInfo(
        version=VERSION,
        python_version=sys.version,
        platform=f"{platform.system()} {platform.release()} ({platform.machine()})",
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        filepath=filepath,
        error_type=error_type,
        error_message=error_message,
        original_error_type=(
            type(original_error).__name__ if original_error is not None else None
        ),
        original_error_message=(
            str(original_error) if original_error is not None else None
        ),
        context=dict(context or {}),
        dependencies=_get_package_versions(),
    )


class AnnotationError(Exception):
    """Base exception for all annotation_core errors.

    Attributes:
        message: Human-readable error message.
        filepath: Name of the related annotation file (if applicable).
        original_error: The original exception that was caught (if wrapping).
        context: Additional context information as key-value pairs.

    Example:
        >>> raise AnnotationError("Something went wrong", context={"format": "csv"})
    """

    #: Stable identifier used for the diagnostic produced from this error
    code: str = "error"

    def __init__(
        self,
        message: str,
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.filepath = filepath
        self.original_error = original_error
        self.context = context or {}

        full_message = message
        if filepath:
            full_message = f"{message} (file: {filepath})"
        if original_error:
            full_message = (
                f"{full_message}: {type(original_error).__name__}: {original_error}"
            )

        super().__init__(full_message)

    def diagnostic_context(self) -> Dict[str, Any]:
        """Context suitable for an ingestion diagnostic."""
        ctx: Dict[str, Any] = {}
        if self.filepath:
            ctx["file"] = self.filepath
        ctx.update(self.context)
        if self.original_error is not None:
            ctx["cause"] = f"{type(self.original_error).__name__}: {self.original_error}"
        return ctx

    def get_diagnostic_info(self) -> DiagnosticInfo:
        """Generate diagnostic information for this error."""
        return _build_diagnostic(
            error_type=type(self).__name__,
            error_message=self.message,
            filepath=self.filepath,
            original_error=self.original_error,
            context=self.context,
        )

    def format_for_issue(
        self, *, locale: str = DEFAULT_LOCALE, include_header: bool = False
    ) -> str:
        return self.get_diagnostic_info().format_for_issue(
            locale=locale, include_header=include_header
        )


class StructuralError(AnnotationError):
    """The batch has no recoverable structure and is rejected as a whole.

    Raised for unparseable JSON or a non-object COCO root, CSV headers
    missing a required column, and pre-flight failures (wrong file count or
    extension for the declared format).

    Example:
        >>> raise StructuralError(
        ...     "CSV must have a class/label/category column",
        ...     filepath="boxes.csv",
        ...     context={"header": "filename,x,y,width,height"},
        ... )
    """

    code = "structural"

    def __init__(
        self,
        message: str = "Annotation payload is structurally invalid",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=context,
        )


class EmptyResultError(AnnotationError):
    """No annotation was accepted after attempting every record.

    This usually means the wrong format was selected for the data, or that
    annotation file names do not match the loaded images.

    Attributes:
        reason: ``"no_annotation_files"`` when no file of the expected type
            carried annotations, ``"nothing_parsed"`` when files were present
            but every record was skipped.
    """

    code = "empty_result"

    NO_ANNOTATION_FILES = "no_annotation_files"
    NOTHING_PARSED = "nothing_parsed"

    def __init__(
        self,
        message: str = "No valid annotations found",
        *,
        reason: str = NOTHING_PARSED,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        ctx = context.copy() if context else {}
        ctx["reason"] = reason
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


class RecordSkipped(AnnotationError):
    """A single record was rejected; the batch continues.

    Attributes:
        code: Diagnostic code (e.g. ``malformed_line``, ``out_of_range``,
            ``degenerate_box``, ``unmatched_image``).
        raw_value: The offending raw input, kept for the diagnostic.
    """

    def __init__(
        self,
        message: str = "Record skipped",
        *,
        code: str = "invalid_record",
        raw_value: Any = None,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.raw_value = raw_value
        ctx = context.copy() if context else {}
        if raw_value is not None:
            ctx["raw_value"] = raw_value
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


class AnnotationValidationError(AnnotationError):
    """Exception raised when validation of parameters or inputs fails.

    Attributes:
        parameter_name: Name of the invalid parameter.
        provided_value: The value that was provided.
        expected: Description of what was expected.

    Example:
        >>> raise AnnotationValidationError(
        ...     "Image width must be a positive integer",
        ...     parameter_name="width",
        ...     provided_value=0,
        ...     expected="positive integer (pixels)",
        ... )
    """

    code = "validation"

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        parameter_name: Optional[str] = None,
        provided_value: Any = None,
        expected: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.parameter_name = parameter_name
        self.provided_value = provided_value
        self.expected = expected

        ctx = context.copy() if context else {}
        if parameter_name:
            ctx["parameter_name"] = parameter_name
        if provided_value is not None:
            ctx["provided_value"] = repr(provided_value)
        if expected:
            ctx["expected"] = expected

        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


class AnnotationConfigError(AnnotationError):
    """Exception raised when configuration is invalid.

    Attributes:
        config_key: The configuration key that has an issue.
        plugin_name: Name of the decoder plugin (if decoder-related).

    Example:
        >>> raise AnnotationConfigError(
        ...     "Invalid decoder configuration",
        ...     config_key="class_file_names",
        ...     plugin_name="yolo",
        ... )
    """

    code = "config"

    def __init__(
        self,
        message: str = "Configuration error",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        config_key: Optional[str] = None,
        plugin_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config_key = config_key
        self.plugin_name = plugin_name

        ctx = context.copy() if context else {}
        if config_key:
            ctx["config_key"] = config_key
        if plugin_name:
            ctx["plugin_name"] = plugin_name

        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=ctx,
        )


# =============================================================================
# CLI Helper Functions
# =============================================================================


def format_error_for_user(
    error: AnnotationError, *, verbose: bool = False, locale: str = DEFAULT_LOCALE
) -> str:
    """Format an error message for CLI display.

    Args:
        error: The AnnotationError to format.
        verbose: If True, include full diagnostic information.
        locale: Locale code for message localization.

    Returns:
        Formatted error message string.
    """
    lines: List[str] = [
        "",
        "=" * 60,
        get_message("ui.error.header", locale=locale, message=error.message),
        "=" * 60,
    ]

    if error.filepath:
        lines.append(
            get_message("ui.error.filepath", locale=locale, filepath=error.filepath)
        )

    if error.original_error:
        lines.append(
            get_message(
                "ui.error.cause",
                locale=locale,
                error_type=type(error.original_error).__name__,
                error_message=error.original_error,
            )
        )

    if isinstance(error, EmptyResultError):
        lines.append(get_message(f"ui.error.empty.{error.reason}", locale=locale))

    if verbose:
        lines.extend(
            [
                "",
                get_message("ui.diagnostic.info", locale=locale),
                "-" * 60,
                error.format_for_issue(locale=locale),
            ]
        )
    else:
        lines.extend(["", get_message("ui.diagnostic.hint.verbose", locale=locale)])

    lines.append("")
    return "\n".join(lines)


def save_diagnostic_report(
    error: AnnotationError,
    output_path: Optional[str] = None,
    *,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """Save diagnostic information to a Markdown file.

    Args:
        error: The AnnotationError to generate diagnostics for.
        output_path: Path for the output file. If None, generates a
            timestamped filename in the current directory.
        locale: Locale code for localized messages.

    Returns:
        Path to the saved diagnostic file.
    """
    if output_path is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = f"annotation_diagnostic_{timestamp}.md"

    content = error.get_diagnostic_info().format_for_issue(
        locale=locale, include_header=True
    )
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(content)

    return output_path


def create_diagnostic_from_exception(
    exc: BaseException,
    *,
    filepath: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> DiagnosticInfo:
    """Create diagnostic info from any exception.

    Useful for wrapping non-AnnotationError exceptions.
    """
    return _build_diagnostic(
        error_type=type(exc).__name__,
        error_message=str(exc),
        filepath=filepath,
        original_error=None,
        context=context,
    )


__all__ = [
    "DiagnosticInfo",
    "AnnotationError",
    "StructuralError",
    "EmptyResultError",
    "RecordSkipped",
    "AnnotationValidationError",
    "AnnotationConfigError",
    "format_error_for_user",
    "save_diagnostic_report",
    "create_diagnostic_from_exception",
]
