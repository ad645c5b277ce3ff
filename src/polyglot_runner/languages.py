from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from .errors import UnsupportedLanguageError

_NATIVE_SUFFIX = ".exe" if os.name == "nt" else ""


@dataclass(frozen=True, slots=True)
class ToolchainSpec:
    """Static description of how one language is built and run.

    Command templates are argv tuples whose parts may reference `{source}`,
    `{artifact}`, `{workdir}` and `{class_name}`.

    Example:
        ```python
        spec = ToolchainSpec("python", ".py", False, ("python3", "{source}"))
        ```
    """

    language_id: str
    source_extension: str
    needs_compile: bool
    run_command: tuple[str, ...]
    compile_command: tuple[str, ...] | None = None
    artifact_extension: str | None = None
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Reject specs whose compile flag and command disagree.

        Example:
            ```python
            ToolchainSpec("c", ".c", True, ("{artifact}",), ("gcc", "{source}"), "")
            ```
        """
        if not self.run_command:
            raise ValueError(f"{self.language_id}: run_command must not be empty")
        if self.needs_compile and not self.compile_command:
            raise ValueError(f"{self.language_id}: compiled languages need a compile_command")
        if not self.needs_compile and self.compile_command:
            raise ValueError(f"{self.language_id}: compile_command set but needs_compile is False")
        if self.needs_compile and self.artifact_extension is None:
            raise ValueError(f"{self.language_id}: compiled languages need an artifact_extension")

    def render_compile(self, values: Mapping[str, str]) -> list[str]:
        """Expand the compile template into an argv list.

        Example:
            ```python
            argv = spec.render_compile({"source": "/tmp/w/main.c", "artifact": "/tmp/w/main"})
            ```
        """
        if self.compile_command is None:
            raise ValueError(f"{self.language_id} is not a compiled language")
        return [part.format_map(values) for part in self.compile_command]

    def render_run(self, values: Mapping[str, str]) -> list[str]:
        """Expand the run template into an argv list.

        Example:
            ```python
            argv = spec.render_run({"source": "/tmp/w/main.py"})
            ```
        """
        return [part.format_map(values) for part in self.run_command]


DEFAULT_TOOLCHAINS: tuple[ToolchainSpec, ...] = (
    ToolchainSpec(
        language_id="python",
        source_extension=".py",
        needs_compile=False,
        run_command=("python3", "{source}"),
    ),
    ToolchainSpec(
        language_id="javascript",
        source_extension=".js",
        needs_compile=False,
        run_command=("node", "{source}"),
    ),
    ToolchainSpec(
        language_id="typescript",
        source_extension=".ts",
        needs_compile=False,
        run_command=("npx", "ts-node", "{source}"),
    ),
    ToolchainSpec(
        language_id="c",
        source_extension=".c",
        needs_compile=True,
        compile_command=("gcc", "{source}", "-o", "{artifact}"),
        run_command=("{artifact}",),
        artifact_extension=_NATIVE_SUFFIX,
    ),
    ToolchainSpec(
        language_id="cpp",
        source_extension=".cpp",
        needs_compile=True,
        compile_command=("g++", "{source}", "-o", "{artifact}"),
        run_command=("{artifact}",),
        artifact_extension=_NATIVE_SUFFIX,
        aliases=("c++",),
    ),
    ToolchainSpec(
        language_id="java",
        source_extension=".java",
        needs_compile=True,
        compile_command=("javac", "-d", "{workdir}", "{source}"),
        run_command=("java", "-cp", "{workdir}", "{class_name}"),
        artifact_extension=".class",
    ),
)


class LanguageRegistry:
    """Closed, case-insensitive lookup table of toolchains.

    Example:
        ```python
        registry = LanguageRegistry(DEFAULT_TOOLCHAINS)
        spec = registry.resolve("C++")
        ```
    """

    def __init__(self, specs: Iterable[ToolchainSpec]) -> None:
        """Index the given specs by id and alias.

        Example:
            ```python
            registry = LanguageRegistry([spec])
            ```
        """
        self._specs = tuple(specs)
        self._by_name: dict[str, ToolchainSpec] = {}
        for spec in self._specs:
            for name in (spec.language_id, *spec.aliases):
                key = name.lower()
                if key in self._by_name:
                    raise ValueError(f"Duplicate language identifier: {name}")
                self._by_name[key] = spec

    def resolve(self, language_id: object) -> ToolchainSpec:
        """Return the spec for an identifier or raise `UnsupportedLanguageError`.

        Example:
            ```python
            spec = registry.resolve("Python")
            ```
        """
        if isinstance(language_id, str):
            spec = self._by_name.get(language_id.strip().lower())
            if spec is not None:
                return spec
        raise UnsupportedLanguageError(str(language_id), self.supported())

    def for_extension(self, suffix: str) -> ToolchainSpec:
        """Infer the toolchain from a source file suffix such as `.py`.

        Example:
            ```python
            spec = registry.for_extension(".java")
            ```
        """
        normalized = suffix.lower()
        for spec in self._specs:
            if spec.source_extension == normalized:
                return spec
        raise UnsupportedLanguageError(suffix or "<no extension>", self.supported())

    def supported(self) -> list[str]:
        """List canonical language ids in registration order.

        Example:
            ```python
            registry.supported()
            ```
        """
        return [spec.language_id for spec in self._specs]

    def __iter__(self) -> Iterator[ToolchainSpec]:
        """Iterate over the registered specs.

        Example:
            ```python
            ids = [spec.language_id for spec in registry]
            ```
        """
        return iter(self._specs)


DEFAULT_REGISTRY = LanguageRegistry(DEFAULT_TOOLCHAINS)


def resolve(language_id: object) -> ToolchainSpec:
    """Resolve a language against the default registry.

    Example:
        ```python
        spec = resolve("javascript")
        ```
    """
    return DEFAULT_REGISTRY.resolve(language_id)
